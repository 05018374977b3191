import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from hookgate.hooks.errors import HookConfigError
from hookgate.hooks.loader import load_registry, load_registry_file
from hookgate.hooks.types import DEFAULT_TIMEOUT_MS, HookEvent


class HookLoaderTests(unittest.TestCase):
    def test_flattens_matching_groups_in_order(self) -> None:
        registry = load_registry(
            {
                "BeforeTool": [
                    {"matcher": "write_*", "hooks": [{"type": "command", "command": "a"}, {"command": "b"}]},
                    {"matcher": "read_file", "hooks": [{"command": "c"}]},
                    {"matcher": "write_file", "hooks": [{"command": "d", "timeout": 1500, "name": "guard"}]},
                ]
            }
        )
        hooks = registry.hooks_for(HookEvent.BEFORE_TOOL, "write_file")
        self.assertEqual([hook.name for hook in hooks], ["a", "b", "guard"])
        self.assertEqual(hooks[0].timeout_ms, DEFAULT_TIMEOUT_MS)
        self.assertEqual(hooks[2].timeout_ms, 1500)
        self.assertEqual(hooks[2].command, "d")
        self.assertEqual(registry.hooks_for("AfterTool", "write_file"), [])
        self.assertEqual(registry.hooks_for("NoSuchEvent", "write_file"), [])

    def test_invalid_matcher_is_logged_once_and_never_matches(self) -> None:
        with self.assertLogs("hookgate.hooks.loader", level="ERROR") as captured:
            registry = load_registry({"BeforeTool": [{"matcher": "[z-a]", "hooks": [{"command": "a"}]}]})
        self.assertEqual(len(captured.records), 1)
        for _ in range(3):
            self.assertEqual(registry.hooks_for("BeforeTool", "z"), [])
        group = registry.groups_for("BeforeTool")[0]
        self.assertFalse(group.matcher.valid)

    def test_invalid_descriptors_are_skipped(self) -> None:
        with self.assertLogs("hookgate.hooks.loader", level="ERROR") as captured:
            registry = load_registry(
                {
                    "BeforeTool": [
                        {
                            "matcher": "",
                            "hooks": [
                                {"type": "plugin", "command": "x"},
                                {"command": ""},
                                {"command": "y", "timeout": 0},
                                {"command": "z", "timeout": "soon"},
                                {"command": "ok"},
                            ],
                        },
                        "not-a-group",
                    ]
                }
            )
        self.assertEqual([hook.name for hook in registry.hooks_for("BeforeTool", "any")], ["ok"])
        self.assertEqual(len(captured.records), 5)

    def test_disabled_hooks_and_unknown_events(self) -> None:
        with self.assertLogs("hookgate.hooks.loader", level="WARNING"):
            registry = load_registry(
                {
                    "disabled": ["noisy"],
                    "SessionStart": [{"hooks": [{"command": "s"}]}],
                    "AfterTool": [{"hooks": [{"command": "noisy"}, {"command": "/bin/audit", "name": "audit"}]}],
                }
            )
        self.assertEqual([hook.name for hook in registry.hooks_for("AfterTool", "write_file")], ["audit"])
        self.assertEqual(set(registry.groups), {HookEvent.AFTER_TOOL})

    def test_empty_config_is_empty_registry(self) -> None:
        self.assertTrue(load_registry(None).is_empty())
        self.assertTrue(load_registry({}).is_empty())

    def test_registry_is_read_only(self) -> None:
        registry = load_registry({"BeforeTool": [{"hooks": [{"command": "a"}]}]})
        with self.assertRaises(TypeError):
            registry.groups[HookEvent.AFTER_TOOL] = ()  # type: ignore[index]

    def test_load_registry_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "settings.yaml"
            path.write_text(
                "\n".join(
                    [
                        "hooks:",
                        "  BeforeTool:",
                        "    - matcher: write_file",
                        "      hooks:",
                        "        - type: command",
                        "          command: ./guard.sh",
                        "          timeout: 5000",
                    ]
                ),
                encoding="utf-8",
            )
            registry = load_registry_file(path)
            hooks = registry.hooks_for("BeforeTool", "write_file")
            self.assertEqual(len(hooks), 1)
            self.assertEqual(hooks[0].command, "./guard.sh")
            self.assertEqual(hooks[0].timeout_ms, 5000)

            broken = Path(temp_dir) / "broken.yaml"
            broken.write_text("hooks: [unclosed", encoding="utf-8")
            with self.assertRaises(HookConfigError):
                load_registry_file(broken)


if __name__ == "__main__":
    unittest.main()
