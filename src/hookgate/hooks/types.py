"""Hook data models for hookgate."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, Union


class HookEvent(str, Enum):
    """Pipeline junctures that can fire hooks."""

    BEFORE_TOOL = "BeforeTool"
    AFTER_TOOL = "AfterTool"

    @classmethod
    def parse(cls, value: "HookEvent | str") -> "HookEvent":
        if isinstance(value, cls):
            return value
        return cls(str(value))


DEFAULT_TIMEOUT_MS = 60_000


@dataclass(frozen=True)
class HookDescriptor:
    command: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    name: str = ""
    type: str = "command"
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(self, "name", self.command)
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


@dataclass(frozen=True)
class HookGroup:
    matcher: str | None
    hooks: tuple[HookDescriptor, ...] = ()


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({str(key): _freeze(val) for key, val in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Convert frozen args back into plain JSON-compatible containers."""
    if isinstance(value, Mapping):
        return {key: thaw(val) for key, val in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class ToolCall:
    """A pending tool invocation. Overrides always produce a new value."""

    name: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", _freeze(self.args))

    def with_args(self, args: Mapping[str, Any]) -> "ToolCall":
        return replace(self, args=args)

    def args_dict(self) -> dict[str, Any]:
        return thaw(self.args)


@dataclass(frozen=True)
class Allow:
    tool_input: Mapping[str, Any] | None = None
    system_message: str | None = None
    additional_context: str | None = None

    label = "allow"


@dataclass(frozen=True)
class Deny:
    reason: str | None = None

    label = "deny"


@dataclass(frozen=True)
class Ask:
    reason: str | None = None

    label = "ask"


Decision = Union[Allow, Deny, Ask]


@dataclass(frozen=True)
class HookInvocationResult:
    hook_name: str
    command: str
    exit_code: int | None
    duration_ms: int
    decision: Decision
    error: str | None = None
    stderr: str = ""

    @property
    def decision_label(self) -> str:
        return self.decision.label

    @property
    def reason(self) -> str | None:
        if isinstance(self.decision, (Deny, Ask)):
            return self.decision.reason
        return None


MergedAction = Literal["proceed", "deny"]


@dataclass(frozen=True)
class MergedDecision:
    """Terminal outcome of one hook stage pass."""

    action: MergedAction
    tool_call: ToolCall
    original_call: ToolCall
    reason: str | None = None
    results: tuple[HookInvocationResult, ...] = ()
    system_messages: tuple[str, ...] = ()
    additional_context: tuple[str, ...] = ()

    @property
    def proceed(self) -> bool:
        return self.action == "proceed"

    @property
    def modified(self) -> bool:
        return self.tool_call != self.original_call

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "reason": self.reason,
            "tool_call": {"name": self.tool_call.name, "args": self.tool_call.args_dict()},
            "modified": self.modified,
            "hooks": [
                {
                    "hook_name": result.hook_name,
                    "decision": result.decision_label,
                    "exit_code": result.exit_code,
                    "duration_ms": result.duration_ms,
                    "error": result.error,
                }
                for result in self.results
            ],
            "system_messages": list(self.system_messages),
            "additional_context": list(self.additional_context),
        }


def build_hook_input(
    event: HookEvent | str,
    call: ToolCall,
    *,
    tool_output: Any = None,
    session_id: str | None = None,
    cwd: str | None = None,
) -> dict[str, Any]:
    """Build the JSON payload delivered to a hook process on stdin."""
    hook_event = HookEvent.parse(event)
    payload: dict[str, Any] = {
        "hookEventName": hook_event.value,
        "tool_name": call.name,
        "tool_input": call.args_dict(),
    }
    if hook_event is HookEvent.AFTER_TOOL:
        payload["tool_output"] = thaw(tool_output) if tool_output is not None else {}
    if session_id:
        payload["session_id"] = session_id
    if cwd:
        payload["cwd"] = cwd
    payload["timestamp"] = datetime.now().astimezone().isoformat(timespec="seconds")
    return payload
