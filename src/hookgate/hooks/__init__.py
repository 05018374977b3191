"""Hook interception engine for hookgate."""

from .errors import (
    HookConfigError,
    HookError,
    InvocationExitError,
    InvocationTimeout,
    MalformedOutput,
    MatchError,
    SpawnError,
)
from .invoker import invoke_hook
from .loader import HookRegistry, load_registry, load_registry_file
from .matcher import compile_matcher, match
from .merger import fold, merge
from .stage import HookStage
from .telemetry import FileTelemetrySink, NullTelemetrySink, TelemetryEmitter, TelemetrySink
from .types import (
    Allow,
    Ask,
    Decision,
    Deny,
    HookDescriptor,
    HookEvent,
    HookGroup,
    HookInvocationResult,
    MergedDecision,
    ToolCall,
    build_hook_input,
)

__all__ = [
    "Allow",
    "Ask",
    "Decision",
    "Deny",
    "FileTelemetrySink",
    "HookConfigError",
    "HookDescriptor",
    "HookError",
    "HookEvent",
    "HookGroup",
    "HookInvocationResult",
    "HookRegistry",
    "HookStage",
    "InvocationExitError",
    "InvocationTimeout",
    "MalformedOutput",
    "MatchError",
    "MergedDecision",
    "NullTelemetrySink",
    "SpawnError",
    "TelemetryEmitter",
    "TelemetrySink",
    "ToolCall",
    "build_hook_input",
    "compile_matcher",
    "fold",
    "invoke_hook",
    "load_registry",
    "load_registry_file",
    "match",
    "merge",
]
