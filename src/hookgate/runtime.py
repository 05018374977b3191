"""Build hook stages and tool registries from resolved configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

from .hooks.loader import HookRegistry, load_registry
from .hooks.stage import HookStage
from .hooks.telemetry import (
    FileTelemetrySink,
    NullTelemetrySink,
    TelemetryEmitter,
    TelemetrySink,
    default_telemetry_log_path,
)
from .hooks.types import DEFAULT_TIMEOUT_MS
from .tooling.audit import AuditSink, FileAuditSink, NullAuditSink, default_audit_log_path
from .tooling.registry import ToolRegistry


logger = logging.getLogger(__name__)


def _section(config: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = config.get(key)
    return value if isinstance(value, Mapping) else {}


def hooks_enabled(config: Mapping[str, Any]) -> bool:
    return bool(_section(config, "tools").get("enableHooks", True))


def build_hook_registry(config: Mapping[str, Any]) -> HookRegistry:
    if not hooks_enabled(config):
        logger.info("tools.enableHooks 為 false，不載入任何 hook")
        return HookRegistry.empty()
    runtime_cfg = _section(config, "hook_runtime")
    default_timeout_ms = int(runtime_cfg.get("default_timeout_ms") or DEFAULT_TIMEOUT_MS)
    return load_registry(_section(config, "hooks"), default_timeout_ms=default_timeout_ms)


def build_base_env(config: Mapping[str, Any], parent_env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Environment handed to hooks: only the configured names and values."""
    runtime_cfg = _section(config, "hook_runtime")
    source = os.environ if parent_env is None else parent_env
    env: dict[str, str] = {}
    for name in runtime_cfg.get("pass_env") or []:
        if name in source:
            env[str(name)] = source[name]
    extra = runtime_cfg.get("env") or {}
    if isinstance(extra, Mapping):
        env.update({str(key): str(value) for key, value in extra.items()})
    return env


def build_telemetry_sink(config: Mapping[str, Any], data_dir: Path | None = None) -> TelemetrySink:
    telemetry_cfg = _section(config, "telemetry")
    if not telemetry_cfg.get("enabled", True):
        return NullTelemetrySink()
    log_path = telemetry_cfg.get("log_path")
    return FileTelemetrySink(Path(log_path).expanduser() if log_path else default_telemetry_log_path(data_dir))


def build_audit_sink(config: Mapping[str, Any], data_dir: Path | None = None) -> AuditSink:
    audit_cfg = _section(config, "audit")
    if not audit_cfg.get("enabled", True):
        return NullAuditSink()
    log_path = audit_cfg.get("log_path")
    return FileAuditSink(Path(log_path).expanduser() if log_path else default_audit_log_path(data_dir))


def build_hook_stage(
    config: Mapping[str, Any],
    *,
    cwd: Path | None = None,
    session_id: str | None = None,
    telemetry_sink: TelemetrySink | None = None,
    parent_env: Mapping[str, str] | None = None,
    data_dir: Path | None = None,
) -> HookStage:
    return HookStage(
        registry=build_hook_registry(config),
        telemetry=TelemetryEmitter(telemetry_sink or build_telemetry_sink(config, data_dir)),
        cwd=str(cwd) if cwd else None,
        base_env=build_base_env(config, parent_env),
        session_id=session_id,
    )


def build_tool_registry(
    config: Mapping[str, Any],
    *,
    cwd: Path | None = None,
    session_id: str | None = None,
    telemetry_sink: TelemetrySink | None = None,
    audit_sink: AuditSink | None = None,
    data_dir: Path | None = None,
) -> ToolRegistry:
    return ToolRegistry(
        hook_stage=build_hook_stage(
            config,
            cwd=cwd,
            session_id=session_id,
            telemetry_sink=telemetry_sink,
            data_dir=data_dir,
        ),
        audit_sink=audit_sink or build_audit_sink(config, data_dir),
    )
