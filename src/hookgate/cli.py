"""Command line interface for hookgate."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from .config import ConfigLoader
from .hooks.loader import iter_descriptors
from .hooks.types import HookEvent, ToolCall
from .logging_utils import setup_logger
from .runtime import build_hook_registry, build_hook_stage


EXIT_DENIED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hookgate", description="hookgate 工具呼叫 hook 檢查 CLI")
    parser.add_argument("--data-dir", default=None, help="指定 hookgate 資料夾位置（預設 ~/.hookgate）")
    parser.add_argument("--project-dir", default=None, help="指定專案資料夾（讀取 .hookgate/settings.yaml）")

    subparsers = parser.add_subparsers(dest="command")

    hooks_parser = subparsers.add_parser("hooks", help="Hook 管理")
    hooks_sub = hooks_parser.add_subparsers(dest="hooks_command")

    list_parser = hooks_sub.add_parser("list", help="列出已設定的 hook")
    list_parser.add_argument("--event", choices=[event.value for event in HookEvent], help="只列出指定事件")

    run_parser = hooks_sub.add_parser("run", help="對一個工具呼叫執行 hook 階段")
    run_parser.add_argument("event", choices=[event.value for event in HookEvent], help="事件名稱")
    run_parser.add_argument("tool", help="工具名稱")
    run_parser.add_argument("--args", default="{}", help="工具參數（JSON 物件）")
    run_parser.add_argument("--tool-output", default=None, help="工具輸出（JSON，僅 AfterTool）")
    run_parser.add_argument("--session-id", default=None, help="傳給 hook 的 session id")

    config_parser = subparsers.add_parser("config", help="設定管理")
    config_sub = config_parser.add_subparsers(dest="config_command")

    config_get = config_sub.add_parser("get", help="讀取合併後的設定值")
    config_get.add_argument("key", help="設定鍵（例如 hook_runtime.default_timeout_ms）")

    config_set = config_sub.add_parser("set", help="更新設定")
    config_set.add_argument("key", help="設定鍵（例如 tools.enableHooks）")
    config_set.add_argument("value", help="設定值（會以 YAML 解析）")
    config_set.add_argument("--project", action="store_true", help="寫入專案設定（需搭配 --project-dir）")

    config_sub.add_parser("show", help="顯示合併後設定與來源")

    return parser


def _parse_json_object(raw: str, label: str) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{label} 不是合法的 JSON：{exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"{label} 必須為 JSON 物件")
    return payload


def _handle_hooks(
    config: dict[str, Any],
    project_dir: Path | None,
    data_dir: Path,
    args: argparse.Namespace,
) -> int:
    if args.hooks_command == "list":
        registry = build_hook_registry(config)
        found = False
        for hook_event, compiled, descriptor in iter_descriptors(registry):
            if args.event and hook_event.value != args.event:
                continue
            found = True
            matcher = compiled.group.matcher or "*"
            status = "" if compiled.matcher.valid else "（matcher 無效）"
            print(f"{hook_event.value}｜{matcher}{status}｜{descriptor.name}｜{descriptor.timeout_ms}ms")
        if not found:
            print("目前沒有任何 hook。")
        return 0

    if args.hooks_command == "run":
        tool_args = _parse_json_object(args.args, "--args")
        tool_output = json.loads(args.tool_output) if args.tool_output else None
        stage = build_hook_stage(config, cwd=project_dir, session_id=args.session_id, data_dir=data_dir)
        merged = stage.run(args.event, ToolCall(name=args.tool, args=tool_args), tool_output=tool_output)
        print(json.dumps(merged.to_dict(), ensure_ascii=False, indent=2))
        return 0 if merged.proceed else EXIT_DENIED

    print("請指定 hooks 子命令（list 或 run）", file=sys.stderr)
    return 1


def _handle_config(loader: ConfigLoader, project_dir: Path | None, args: argparse.Namespace) -> int:
    if args.config_command == "get":
        value = loader.get_value(args.key, project_dir=project_dir)
        if isinstance(value, (dict, list)):
            print(yaml.safe_dump(value, allow_unicode=True, sort_keys=False).rstrip())
        else:
            print(value)
        return 0
    if args.config_command == "set":
        if args.project and project_dir is None:
            raise ValueError("--project 需要同時指定 --project-dir")
        try:
            parsed_value = yaml.safe_load(args.value)
        except yaml.YAMLError as exc:
            raise ValueError("設定值格式錯誤") from exc
        config_path = loader.set_value(args.key, parsed_value, project_dir=project_dir if args.project else None)
        print(f"已更新設定：{config_path}")
        return 0
    if args.config_command == "show":
        resolution = loader.resolve(project_dir=project_dir)
        print(yaml.safe_dump(resolution.annotated(), allow_unicode=True, sort_keys=False).rstrip())
        return 0
    print("請指定 config 子命令（get、set 或 show）", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    data_dir = Path(args.data_dir).expanduser() if args.data_dir else None
    project_dir = Path(args.project_dir).expanduser().resolve() if args.project_dir else None
    loader = ConfigLoader(data_dir=data_dir)
    logger = setup_logger("hookgate", loader.data_dir / "logs")

    try:
        if args.command == "config":
            return _handle_config(loader, project_dir, args)
        config = loader.resolve(project_dir=project_dir).effective
        if args.command == "hooks":
            return _handle_hooks(config, project_dir, loader.data_dir, args)
        parser.print_help()
        return 0
    except Exception as exc:  # noqa: BLE001
        logger.error("執行失敗：%s", exc, exc_info=True)
        print(f"發生錯誤：{exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
