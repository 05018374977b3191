"""Configuration helpers for hookgate."""

from __future__ import annotations

import os
import tempfile
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .hooks.types import DEFAULT_TIMEOUT_MS
from .jsonl import exclusive, resolve_data_dir

DEFAULT_CONFIG: dict[str, Any] = {
    "hookgate": {
        "data_dir": "~/.hookgate",
        "project_config_rel": ".hookgate/settings.yaml",
    },
    "tools": {"enableHooks": True},
    "hooks": {},
    "hook_runtime": {
        "default_timeout_ms": DEFAULT_TIMEOUT_MS,
        "pass_env": ["PATH", "HOME", "LANG", "SYSTEMROOT"],
        "env": {},
    },
    "telemetry": {"enabled": True, "log_path": None},
    "audit": {"enabled": True, "log_path": None},
}

HOOKS_KEY = "hooks"


def merge_hook_settings(base: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Concatenate per-event group lists; earlier layers keep their position."""
    merged = deepcopy(dict(base))
    for key, value in updates.items():
        if key == "disabled":
            existing = merged.get("disabled") or []
            extra = value if isinstance(value, list) else [value]
            merged["disabled"] = list(existing) + [item for item in extra if item not in existing]
        elif isinstance(value, list) and isinstance(merged.get(key), list):
            merged[key] = list(merged[key]) + deepcopy(value)
        else:
            merged[key] = deepcopy(value)
    return merged


def read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"讀取設定檔失敗：{path}") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"設定檔必須為物件：{path}")
    return payload


def write_yaml(path: Path, data: dict[str, Any]) -> None:
    temp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            tmp_file.write(yaml.safe_dump(data, allow_unicode=True, sort_keys=False))
            temp_name = tmp_file.name
        os.replace(temp_name, path)
    except OSError as exc:
        if temp_name and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise RuntimeError(f"寫入設定檔失敗：{path}") from exc


def set_config_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    parts = key_path.split(".")
    cursor = config
    for part in parts[:-1]:
        child = cursor.setdefault(part, {})
        if not isinstance(child, dict):
            raise ValueError(f"設定鍵 {part} 不是物件，無法寫入：{key_path}")
        cursor = child
    cursor[parts[-1]] = value
    return config


def get_config_value(config: dict[str, Any], key_path: str) -> Any:
    cursor: Any = config
    for part in key_path.split("."):
        if not isinstance(cursor, dict) or part not in cursor:
            raise KeyError(f"找不到設定鍵：{key_path}")
        cursor = cursor[part]
    return cursor


def _assign_sources(value: Any, source: str) -> Any:
    if isinstance(value, dict):
        return {key: _assign_sources(val, source) for key, val in value.items()}
    return source


def _merge_with_sources(
    base: dict[str, Any],
    sources: dict[str, Any],
    updates: Mapping[str, Any],
    source: str,
) -> None:
    for key, value in updates.items():
        if key == HOOKS_KEY and isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = merge_hook_settings(base[key], value)
            hook_sources = sources.setdefault(key, {})
            if not isinstance(hook_sources, dict):
                hook_sources = {}
                sources[key] = hook_sources
            for event_name in value:
                previous = hook_sources.get(event_name)
                hook_sources[event_name] = f"{previous}+{source}" if isinstance(previous, str) else source
        elif isinstance(value, dict) and isinstance(base.get(key), dict) and isinstance(sources.get(key), dict):
            _merge_with_sources(base[key], sources[key], value, source)
        else:
            base[key] = deepcopy(value)
            sources[key] = _assign_sources(value, source)


def annotate_config(effective: Any, sources: Any) -> Any:
    if isinstance(effective, dict) and isinstance(sources, dict):
        return {key: annotate_config(effective[key], sources.get(key)) for key in effective}
    return {"value": effective, "source": sources}


@dataclass
class ConfigResolution:
    effective: dict[str, Any]
    sources: dict[str, Any]

    def annotated(self) -> dict[str, Any]:
        return annotate_config(self.effective, self.sources)


class ConfigLoader:
    """Layered settings: default, global, project, cli (later wins)."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir or resolve_data_dir()

    def load_global(self) -> dict[str, Any]:
        return read_yaml(self._global_config_path())

    def load_project(self, project_dir: Path) -> dict[str, Any]:
        return read_yaml(self._project_config_path(project_dir))

    def resolve(
        self,
        project_dir: Path | None = None,
        cli_overrides: Mapping[str, Any] | None = None,
    ) -> ConfigResolution:
        effective = deepcopy(DEFAULT_CONFIG)
        sources = _assign_sources(DEFAULT_CONFIG, "default")

        _merge_with_sources(effective, sources, self.load_global(), "global")

        if project_dir:
            _merge_with_sources(effective, sources, self.load_project(project_dir), "project")

        if cli_overrides:
            _merge_with_sources(effective, sources, cli_overrides, "cli")

        return ConfigResolution(effective=effective, sources=sources)

    def get_value(self, key_path: str, project_dir: Path | None = None) -> Any:
        return get_config_value(self.resolve(project_dir=project_dir).effective, key_path)

    def set_value(self, key_path: str, value: Any, project_dir: Path | None = None) -> Path:
        """Write one dotted key into the global file, or the project file when given."""
        config_path = self._global_config_path() if project_dir is None else self._project_config_path(project_dir)
        lock_path = config_path.with_suffix(f"{config_path.suffix}.lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        with lock_path.open("a+") as handle, exclusive(handle):
            current = read_yaml(config_path)
            write_yaml(config_path, set_config_value(current, key_path, value))
        return config_path

    def _global_config_path(self) -> Path:
        return self.data_dir / "config.yaml"

    def _project_config_path(self, project_dir: Path) -> Path:
        project_dir = Path(project_dir).expanduser()
        if not project_dir.is_dir():
            raise ValueError(f"專案資料夾不存在：{project_dir}")
        return project_dir / DEFAULT_CONFIG["hookgate"]["project_config_rel"]
