"""Hook error definitions."""

from __future__ import annotations


class HookError(RuntimeError):
    """Base class for hook errors."""

    tag = "hook_error"


class HookConfigError(HookError, ValueError):
    """Raised when a hook group or descriptor is invalid."""

    tag = "config_error"


class MatchError(HookError, ValueError):
    """Raised when a matcher pattern cannot be compiled."""

    tag = "match_error"


class SpawnError(HookError):
    """Raised when a hook process cannot be started."""

    tag = "spawn_error"


class InvocationTimeout(HookError):
    """Raised when a hook process exceeds its timeout."""

    tag = "timeout"


class InvocationExitError(HookError):
    """Raised when a hook exits non-zero without usable output."""

    tag = "non_zero_exit"


class MalformedOutput(HookError):
    """Raised when hook output is JSON but violates the output schema."""

    tag = "malformed_output"


INTERNAL_ERROR = "internal_error"
