"""Audit sink interface for executed tool calls."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

from hookgate.hooks.types import ToolCall
from hookgate.jsonl import append_jsonl, resolve_data_dir

from .types import ToolResult


logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Records tool calls and outcomes."""

    def record(
        self,
        call: ToolCall,
        result: ToolResult,
        decision: str,
        *,
        duration_ms: int,
        hook_modified: bool = False,
    ) -> None:
        ...


@dataclass(frozen=True)
class NullAuditSink:
    """No-op audit sink."""

    def record(
        self,
        call: ToolCall,
        result: ToolResult,
        decision: str,
        *,
        duration_ms: int,
        hook_modified: bool = False,
    ) -> None:
        return None


@dataclass(frozen=True)
class FileAuditSink:
    """Append audit records to a JSONL file.

    ``call`` is always the effective call, after hook overrides.
    """

    log_path: Path

    def record(
        self,
        call: ToolCall,
        result: ToolResult,
        decision: str,
        *,
        duration_ms: int,
        hook_modified: bool = False,
    ) -> None:
        args = call.args_dict()
        payload = {
            "tool": call.name,
            "decision": decision,
            "duration_ms": duration_ms,
            "is_error": result.is_error,
            "hook_modified": hook_modified,
            "args_sha256": payload_digest(args),
            "result_sha256": payload_digest(result.as_output()),
            "args_shape": describe_shape(args),
        }
        try:
            append_jsonl(self.log_path, payload)
        except OSError as exc:
            logger.error("寫入工具稽核紀錄失敗：%s", exc, exc_info=True)


def default_audit_log_path(data_dir: Path | None = None) -> Path:
    return (data_dir or resolve_data_dir()) / "logs" / "tool_audit.jsonl"


def payload_digest(payload: object) -> str:
    """SHA-256 of the canonical JSON form, so equal args give equal digests."""
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def describe_shape(value: object, *, depth: int = 2) -> object:
    """Keys and value kinds only; argument content never reaches the audit log."""
    if isinstance(value, Mapping):
        if depth <= 0:
            return f"object[{len(value)}]"
        return {str(key): describe_shape(item, depth=depth - 1) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return f"list[{len(value)}]"
    if isinstance(value, str):
        return f"str[{len(value)}]"
    if value is None:
        return "null"
    return type(value).__name__
