"""Fold hook decisions onto the evolving tool call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .types import Allow, Ask, Deny, HookInvocationResult, MergedDecision, ToolCall


@dataclass(frozen=True)
class FoldStep:
    tool_call: ToolCall
    terminate: bool = False
    reason: str | None = None


def default_deny_reason(result: HookInvocationResult) -> str:
    if isinstance(result.decision, Ask):
        return f"Hook {result.hook_name} requested confirmation"
    return f"Blocked by hook: {result.hook_name}"


def fold(current: ToolCall, result: HookInvocationResult) -> FoldStep:
    decision = result.decision
    if isinstance(decision, (Deny, Ask)):
        # ask is not auto-approved; confirmation belongs to the caller
        return FoldStep(tool_call=current, terminate=True, reason=decision.reason or default_deny_reason(result))
    if isinstance(decision, Allow) and decision.tool_input is not None:
        return FoldStep(tool_call=current.with_args(decision.tool_input))
    return FoldStep(tool_call=current)


class DecisionAccumulator:
    """Left-to-right fold state for one stage pass."""

    def __init__(self, original: ToolCall) -> None:
        self.original = original
        self.current = original
        self.results: list[HookInvocationResult] = []
        self.system_messages: list[str] = []
        self.additional_context: list[str] = []
        self.denied_reason: str | None = None

    @property
    def terminated(self) -> bool:
        return self.denied_reason is not None

    def apply(self, result: HookInvocationResult) -> FoldStep:
        if self.terminated:
            raise RuntimeError("fold already terminated")
        self.results.append(result)
        step = fold(self.current, result)
        self.current = step.tool_call
        if isinstance(result.decision, Allow):
            if result.decision.system_message:
                self.system_messages.append(result.decision.system_message)
            if result.decision.additional_context:
                self.additional_context.append(result.decision.additional_context)
        if step.terminate:
            self.denied_reason = step.reason
        return step

    def finish(self) -> MergedDecision:
        return MergedDecision(
            action="deny" if self.terminated else "proceed",
            tool_call=self.current,
            original_call=self.original,
            reason=self.denied_reason,
            results=tuple(self.results),
            system_messages=tuple(self.system_messages),
            additional_context=tuple(self.additional_context),
        )


def merge(call: ToolCall, results: Iterable[HookInvocationResult]) -> MergedDecision:
    accumulator = DecisionAccumulator(call)
    for result in results:
        if accumulator.apply(result).terminate:
            break
    return accumulator.finish()
