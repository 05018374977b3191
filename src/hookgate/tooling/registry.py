"""Tool registry and dispatcher with BeforeTool/AfterTool hook stages."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from hookgate.hooks.stage import HookStage
from hookgate.hooks.types import HookEvent, ToolCall

from .audit import AuditSink, NullAuditSink
from .types import ToolResult


logger = logging.getLogger(__name__)

ToolHandler = Callable[[ToolCall], ToolResult]


@dataclass
class ToolRegistry:
    """Registry for tool handlers.

    ``call`` runs the BeforeTool stage, executes the effective call (which may
    carry hook-rewritten args), audits that effective call, then runs the
    AfterTool stage over the result.
    """

    hook_stage: HookStage | None = None
    audit_sink: AuditSink = field(default_factory=NullAuditSink)
    _handlers: dict[str, ToolHandler] = field(default_factory=dict, init=False)

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[name] = handler

    def call(self, call: ToolCall) -> ToolResult:
        start = time.monotonic()
        handler = self._handlers.get(call.name)
        if handler is None:
            result = ToolResult.text(f"Unknown tool: {call.name}", is_error=True, status="unknown_tool")
            self.audit_sink.record(call, result, "deny", duration_ms=_duration_ms(start))
            return result

        effective = call
        hook_modified = False
        if self.hook_stage is not None:
            before = self.hook_stage.run(HookEvent.BEFORE_TOOL, call)
            if not before.proceed:
                result = ToolResult.text(
                    f"Tool execution blocked by hook: {before.reason}",
                    is_error=True,
                    status="blocked_by_hook",
                    reason=before.reason,
                )
                self.audit_sink.record(call, result, "deny", duration_ms=_duration_ms(start))
                return result
            effective = before.tool_call
            hook_modified = before.modified

        try:
            result = handler(effective)
        except Exception as exc:  # noqa: BLE001
            logger.error("工具 %s 執行失敗：%s", effective.name, exc, exc_info=True)
            result = ToolResult.text(f"Tool execution failed: {exc}", is_error=True, status="failed")
        self.audit_sink.record(
            effective,
            result,
            "allow",
            duration_ms=_duration_ms(start),
            hook_modified=hook_modified,
        )

        if self.hook_stage is not None:
            after = self.hook_stage.run(HookEvent.AFTER_TOOL, effective, tool_output=result.as_output())
            if not after.proceed:
                return ToolResult.text(
                    f"Tool result blocked by hook: {after.reason}",
                    is_error=True,
                    status="blocked_after_tool",
                    reason=after.reason,
                )
            if after.additional_context:
                result.meta["hook_context"] = list(after.additional_context)
        return result


def _duration_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))
