"""Hook stage orchestrator used by the tool pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .errors import INTERNAL_ERROR
from .invoker import invoke_hook
from .loader import HookRegistry
from .merger import DecisionAccumulator
from .telemetry import TelemetryEmitter
from .types import (
    Deny,
    HookDescriptor,
    HookEvent,
    HookInvocationResult,
    MergedDecision,
    ToolCall,
    build_hook_input,
)


logger = logging.getLogger(__name__)

Invoker = Callable[..., HookInvocationResult]


@dataclass(frozen=True)
class HookStage:
    """Match, invoke, merge and report hooks for a single event and tool call.

    Hooks run strictly in sequence: each one receives the tool call produced by
    the previous hook's decision. The first deny (or ask) stops the pass.
    ``run`` never raises; every failure ends up inside a hook result.
    """

    registry: HookRegistry = field(default_factory=HookRegistry.empty)
    telemetry: TelemetryEmitter = field(default_factory=TelemetryEmitter)
    cwd: str | None = None
    base_env: Mapping[str, str] = field(default_factory=dict)
    session_id: str | None = None
    invoker: Invoker = invoke_hook

    def run(
        self,
        event: HookEvent | str,
        tool_call: ToolCall,
        *,
        tool_output: Any = None,
    ) -> MergedDecision:
        accumulator = DecisionAccumulator(tool_call)
        try:
            hook_event = HookEvent.parse(event)
        except ValueError:
            logger.warning("未知的 hook 事件：%s，直接放行", event)
            return accumulator.finish()

        hooks = self._match(hook_event, tool_call)
        for descriptor in hooks:
            current = accumulator.current
            result = self._invoke(descriptor, hook_event, current, tool_output)
            self.telemetry.hook_call(result, event=hook_event, tool_call=current, session_id=self.session_id)
            if accumulator.apply(result).terminate:
                break

        merged = accumulator.finish()
        if not merged.proceed:
            logger.warning(
                "工具 %s 遭 hook 拒絕：%s",
                tool_call.name,
                merged.reason,
                extra={"event_name": hook_event.value, "tool_name": tool_call.name, "session_id": self.session_id},
            )
        elif merged.modified:
            logger.info("工具 %s 的參數已由 hook 改寫", tool_call.name)
        return merged

    def _match(self, event: HookEvent, tool_call: ToolCall) -> list[HookDescriptor]:
        try:
            return self.registry.hooks_for(event, tool_call.name)
        except Exception as exc:  # noqa: BLE001
            logger.error("比對 hook 失敗：%s", exc, exc_info=True)
            return []

    def _invoke(
        self,
        descriptor: HookDescriptor,
        event: HookEvent,
        current: ToolCall,
        tool_output: Any,
    ) -> HookInvocationResult:
        start = time.monotonic()
        try:
            hook_input = build_hook_input(
                event,
                current,
                tool_output=tool_output,
                session_id=self.session_id,
                cwd=self.cwd,
            )
            return self.invoker(descriptor, hook_input, cwd=self.cwd, base_env=self.base_env)
        except Exception as exc:  # noqa: BLE001
            logger.error("Hook %s 執行時發生內部錯誤：%s", descriptor.name, exc, exc_info=True)
            return HookInvocationResult(
                hook_name=descriptor.name,
                command=descriptor.command,
                exit_code=None,
                duration_ms=max(0, int((time.monotonic() - start) * 1000)),
                decision=Deny(reason=f"Hook {descriptor.name} failed internally: {exc}"),
                error=INTERNAL_ERROR,
            )
