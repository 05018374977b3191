"""Telemetry for hook invocations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from hookgate.jsonl import append_jsonl, resolve_data_dir

from .types import HookEvent, HookInvocationResult, ToolCall


logger = logging.getLogger(__name__)

HOOK_CALL_EVENT = "hook_call"


class TelemetrySink(Protocol):
    """Receives well-formed telemetry events."""

    def emit(self, event_name: str, details: dict[str, Any]) -> None:
        ...


@dataclass(frozen=True)
class NullTelemetrySink:
    """No-op telemetry sink."""

    def emit(self, event_name: str, details: dict[str, Any]) -> None:
        return None


@dataclass(frozen=True)
class FileTelemetrySink:
    """Append telemetry events to a JSONL file."""

    log_path: Path

    def emit(self, event_name: str, details: dict[str, Any]) -> None:
        append_jsonl(self.log_path, {"event": event_name, **details})


def default_telemetry_log_path(data_dir: Path | None = None) -> Path:
    return (data_dir or resolve_data_dir()) / "logs" / "telemetry.jsonl"


@dataclass(frozen=True)
class TelemetryEmitter:
    sink: TelemetrySink = field(default_factory=NullTelemetrySink)

    def hook_call(
        self,
        result: HookInvocationResult,
        *,
        event: HookEvent,
        tool_call: ToolCall,
        session_id: str | None = None,
    ) -> dict[str, Any]:
        """Emit one ``hook_call`` event. Sink failures are logged, not raised."""
        details = {
            "hook_name": result.hook_name,
            "command": result.command,
            "event_name": event.value,
            "tool_name": tool_call.name,
            "decision": result.decision_label,
            "duration_ms": result.duration_ms,
            "exit_code": result.exit_code,
            "error": result.error,
            "reason": result.reason,
            "session_id": session_id,
            "ts": datetime.now().astimezone().isoformat(timespec="seconds"),
        }
        level = logging.INFO if result.decision_label == "allow" else logging.WARNING
        logger.log(
            level,
            "Hook %s（%s / %s）：%s，耗時 %sms，exit=%s",
            result.hook_name,
            event.value,
            tool_call.name,
            result.decision_label,
            result.duration_ms,
            result.exit_code,
            extra={
                "hook_name": result.hook_name,
                "event_name": event.value,
                "tool_name": tool_call.name,
                "decision": result.decision_label,
                "error": result.error,
                "session_id": session_id,
            },
        )
        try:
            self.sink.emit(HOOK_CALL_EVENT, details)
        except Exception as exc:  # noqa: BLE001
            logger.error("寫入 hook telemetry 失敗：%s", exc, exc_info=True)
        return details
