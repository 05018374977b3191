"""Tool dispatch with hook interception."""

from .audit import AuditSink, FileAuditSink, NullAuditSink, default_audit_log_path
from .registry import ToolHandler, ToolRegistry
from .types import ToolResult

__all__ = [
    "AuditSink",
    "FileAuditSink",
    "NullAuditSink",
    "ToolHandler",
    "ToolRegistry",
    "ToolResult",
    "default_audit_log_path",
]
