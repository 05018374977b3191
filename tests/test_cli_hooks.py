import io
import json
import os
import shlex
import sys
import tempfile
import textwrap
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

import yaml

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from hookgate import cli
from hookgate.config import read_yaml, write_yaml
from hookgate.jsonl import read_jsonl


class CliHooksTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        self.temp_dir = Path(self._temp.name)
        self.data_dir = self.temp_dir / "home"
        self.project_dir = self.temp_dir / "project"
        (self.project_dir / ".hookgate").mkdir(parents=True)
        script = self.temp_dir / "guard.py"
        script.write_text(
            textwrap.dedent(
                """
                import json, sys
                payload = json.load(sys.stdin)
                if payload["tool_input"].get("file_path", "").endswith(".env"):
                    print(json.dumps({"decision": "deny", "reason": "secrets are off limits"}))
                else:
                    print(json.dumps({"decision": "allow"}))
                """
            ),
            encoding="utf-8",
        )
        command = f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
        write_yaml(
            self.project_dir / ".hookgate" / "settings.yaml",
            {
                "telemetry": {"log_path": str(self.temp_dir / "telemetry.jsonl")},
                "hooks": {
                    "BeforeTool": [
                        {"matcher": "write_file", "hooks": [{"command": command, "name": "env-guard", "timeout": 5000}]}
                    ]
                },
            },
        )

    def tearDown(self) -> None:
        self._temp.cleanup()

    def _run(self, *argv: str) -> tuple[int, str]:
        buffer = io.StringIO()
        with redirect_stdout(buffer), redirect_stderr(io.StringIO()):
            code = cli.main(["--data-dir", str(self.data_dir), "--project-dir", str(self.project_dir), *argv])
        return code, buffer.getvalue()

    def test_list_hooks(self) -> None:
        code, output = self._run("hooks", "list")
        self.assertEqual(code, 0)
        self.assertIn("BeforeTool｜write_file｜env-guard｜5000ms", output)

        code, output = self._run("hooks", "list", "--event", "AfterTool")
        self.assertEqual(code, 0)
        self.assertIn("目前沒有任何 hook。", output)

    def test_run_allows_and_denies(self) -> None:
        code, output = self._run("hooks", "run", "BeforeTool", "write_file", "--args", '{"file_path": "notes.txt"}')
        self.assertEqual(code, 0)
        payload = json.loads(output)
        self.assertEqual(payload["action"], "proceed")
        self.assertEqual(payload["hooks"][0]["hook_name"], "env-guard")

        code, output = self._run("hooks", "run", "BeforeTool", "write_file", "--args", '{"file_path": ".env"}')
        self.assertEqual(code, cli.EXIT_DENIED)
        payload = json.loads(output)
        self.assertEqual(payload["action"], "deny")
        self.assertEqual(payload["reason"], "secrets are off limits")

    def test_invalid_args_json_fails_cleanly(self) -> None:
        code, _ = self._run("hooks", "run", "BeforeTool", "write_file", "--args", "[1, 2]")
        self.assertEqual(code, 1)

    def test_run_writes_telemetry_under_data_dir(self) -> None:
        project_dir = self.temp_dir / "bare-project"
        (project_dir / ".hookgate").mkdir(parents=True)
        settings = read_yaml(self.project_dir / ".hookgate" / "settings.yaml")
        settings.pop("telemetry")
        write_yaml(project_dir / ".hookgate" / "settings.yaml", settings)
        env_home = self.temp_dir / "env-home"
        with mock.patch.dict(os.environ, {"HOOKGATE_HOME": str(env_home), "HOME": str(self.temp_dir / "user")}):
            with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
                code = cli.main(
                    [
                        "--data-dir",
                        str(self.data_dir),
                        "--project-dir",
                        str(project_dir),
                        "hooks",
                        "run",
                        "BeforeTool",
                        "write_file",
                        "--args",
                        '{"file_path": "notes.txt"}',
                    ]
                )
        self.assertEqual(code, 0)
        records = read_jsonl(self.data_dir / "logs" / "telemetry.jsonl")
        self.assertEqual([record["hook_name"] for record in records], ["env-guard"])
        self.assertFalse((env_home / "logs" / "telemetry.jsonl").exists())
        self.assertFalse((self.temp_dir / "user" / ".hookgate").exists())


class CliConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        self.temp_dir = Path(self._temp.name)
        self.data_dir = self.temp_dir / "home"
        self.project_dir = self.temp_dir / "project"
        self.project_dir.mkdir()

    def tearDown(self) -> None:
        self._temp.cleanup()

    def _run(self, *argv: str) -> tuple[int, str]:
        buffer = io.StringIO()
        with redirect_stdout(buffer), redirect_stderr(io.StringIO()):
            code = cli.main(["--data-dir", str(self.data_dir), "--project-dir", str(self.project_dir), *argv])
        return code, buffer.getvalue()

    def test_set_then_get_global_and_project(self) -> None:
        code, _ = self._run("config", "set", "hook_runtime.default_timeout_ms", "5000")
        self.assertEqual(code, 0)
        self.assertEqual(read_yaml(self.data_dir / "config.yaml"), {"hook_runtime": {"default_timeout_ms": 5000}})

        code, _ = self._run("config", "set", "tools.enableHooks", "false", "--project")
        self.assertEqual(code, 0)
        self.assertEqual(
            read_yaml(self.project_dir / ".hookgate" / "settings.yaml"),
            {"tools": {"enableHooks": False}},
        )

        code, output = self._run("config", "get", "hook_runtime.default_timeout_ms")
        self.assertEqual((code, output.strip()), (0, "5000"))
        code, output = self._run("config", "get", "tools.enableHooks")
        self.assertEqual((code, output.strip()), (0, "False"))

    def test_show_reports_sources(self) -> None:
        self._run("config", "set", "hook_runtime.env", "{MODE: strict}")
        code, output = self._run("config", "show")
        self.assertEqual(code, 0)
        annotated = yaml.safe_load(output)
        self.assertEqual(annotated["hook_runtime"]["env"]["MODE"], {"value": "strict", "source": "global"})
        self.assertEqual(annotated["tools"]["enableHooks"], {"value": True, "source": "default"})

    def test_errors_exit_with_one(self) -> None:
        code, _ = self._run("config", "get", "hook_runtime.missing")
        self.assertEqual(code, 1)
        self._run("config", "set", "tools.enableHooks", "false")
        code, _ = self._run("config", "set", "tools.enableHooks.deeper", "1")
        self.assertEqual(code, 1)
        buffer = io.StringIO()
        with redirect_stdout(buffer), redirect_stderr(io.StringIO()):
            code = cli.main(["--data-dir", str(self.data_dir), "config", "set", "tools.enableHooks", "false", "--project"])
        self.assertEqual(code, 1)



if __name__ == "__main__":
    unittest.main()
