"""Hook process invoker.

Runs one hook command as a child process, feeds it the JSON hook input on
stdin and turns whatever comes back (exit status, stdout, timeout) into a
single :class:`HookInvocationResult`. Every failure is captured in the result;
``invoke_hook`` never raises.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import signal
import subprocess
import time
from typing import Any, Mapping

from .errors import (
    HookError,
    InvocationExitError,
    InvocationTimeout,
    MalformedOutput,
    SpawnError,
)
from .types import Allow, Ask, Decision, Deny, HookDescriptor, HookInvocationResult


logger = logging.getLogger(__name__)

PROJECT_DIR_ENV = "HOOKGATE_PROJECT_DIR"
REAP_TIMEOUT_S = 2.0
STDERR_TAIL_CHARS = 500

_ALLOW_VALUES = {"allow", "approve"}
_DENY_VALUES = {"deny", "block"}


def invoke_hook(
    descriptor: HookDescriptor,
    hook_input: Mapping[str, Any],
    *,
    cwd: str | None = None,
    base_env: Mapping[str, str] | None = None,
) -> HookInvocationResult:
    start = time.monotonic()
    exit_code: int | None = None
    stderr = ""
    try:
        argv = _split_command(descriptor)
        payload = json.dumps(hook_input, ensure_ascii=False, default=str)
        process = _spawn(descriptor, argv, cwd=cwd, env=_build_env(descriptor, cwd, base_env))
        stdout, stderr = _communicate(descriptor, process, payload)
        exit_code = process.returncode
        decision = _decide(descriptor, exit_code, stdout, stderr)
        error = None
    except HookError as exc:
        decision = Deny(reason=str(exc))
        error = exc.tag
    return HookInvocationResult(
        hook_name=descriptor.name,
        command=descriptor.command,
        exit_code=exit_code,
        duration_ms=_duration_ms(start),
        decision=decision,
        error=error,
        stderr=stderr,
    )


def _split_command(descriptor: HookDescriptor) -> list[str]:
    try:
        argv = shlex.split(descriptor.command)
    except ValueError as exc:
        raise SpawnError(f"Hook {descriptor.name} could not be started: {exc}") from exc
    if not argv:
        raise SpawnError(f"Hook {descriptor.name} could not be started: empty command")
    return argv


def _build_env(
    descriptor: HookDescriptor,
    cwd: str | None,
    base_env: Mapping[str, str] | None,
) -> dict[str, str]:
    env = dict(base_env or {})
    env.update(descriptor.env)
    if cwd:
        env[PROJECT_DIR_ENV] = str(cwd)
    return env


def _spawn(
    descriptor: HookDescriptor,
    argv: list[str],
    *,
    cwd: str | None,
    env: dict[str, str],
) -> subprocess.Popen[str]:
    try:
        return subprocess.Popen(
            argv,
            text=True,
            encoding="utf-8",
            errors="replace",
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            cwd=cwd,
            start_new_session=os.name == "posix",
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise SpawnError(f"Hook {descriptor.name} could not be started: {exc}") from exc


def _communicate(descriptor: HookDescriptor, process: subprocess.Popen[str], payload: str) -> tuple[str, str]:
    try:
        stdout, stderr = process.communicate(payload, timeout=descriptor.timeout_ms / 1000)
    except subprocess.TimeoutExpired as exc:
        _terminate(process)
        raise InvocationTimeout(f"Hook {descriptor.name} timed out after {descriptor.timeout_ms}ms") from exc
    except OSError as exc:
        _terminate(process)
        raise SpawnError(f"Hook {descriptor.name} could not be started: {exc}") from exc
    return stdout or "", stderr or ""


def _terminate(process: subprocess.Popen[str]) -> None:
    # the leader may already be gone while background children still hold stdout
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            if process.poll() is None:
                process.kill()
    elif process.poll() is None:
        process.kill()
    try:
        process.communicate(timeout=REAP_TIMEOUT_S)
    except subprocess.TimeoutExpired:
        # a grandchild may still hold the pipes open
        for stream in (process.stdin, process.stdout, process.stderr):
            if stream is not None:
                stream.close()
        try:
            process.wait(timeout=REAP_TIMEOUT_S)
        except subprocess.TimeoutExpired:
            logger.error("Hook 程序 %s 終止後仍未結束", process.pid)


def _decide(descriptor: HookDescriptor, exit_code: int, stdout: str, stderr: str) -> Decision:
    payload = parse_hook_output(stdout)
    if payload is None:
        if exit_code != 0:
            message = f"Hook {descriptor.name} exited with code {exit_code}"
            tail = stderr.strip()[-STDERR_TAIL_CHARS:]
            if tail:
                message = f"{message}: {tail}"
            raise InvocationExitError(message)
        return Allow()
    try:
        return decode_decision(payload)
    except MalformedOutput as exc:
        raise MalformedOutput(f"Hook {descriptor.name} returned malformed output: {exc}") from exc


def parse_hook_output(stdout: str) -> Any:
    """Parse hook stdout as JSON. Returns ``None`` when nothing parses."""
    text = stdout.strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = _last_json_line(text)
        if payload is None:
            return None
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            return None
    return payload


def _last_json_line(text: str) -> Any:
    for line in reversed(text.splitlines()):
        line = line.strip()
        if not line:
            continue
        try:
            return json.loads(line)
        except json.JSONDecodeError:
            continue
    return None


def decode_decision(payload: Any) -> Decision:
    """Turn a parsed hook output document into a :data:`Decision`."""
    if not isinstance(payload, dict):
        raise MalformedOutput(f"expected a JSON object, got {type(payload).__name__}")

    reason = _optional_str(payload, "reason")
    system_message = _optional_str(payload, "systemMessage")
    specific = payload.get("hookSpecificOutput")
    if specific is not None and not isinstance(specific, dict):
        raise MalformedOutput("hookSpecificOutput must be an object")
    specific = specific or {}
    tool_input = specific.get("tool_input")
    if tool_input is not None and not isinstance(tool_input, dict):
        raise MalformedOutput("hookSpecificOutput.tool_input must be an object")
    additional_context = _optional_str(specific, "additionalContext")

    if payload.get("continue") is False:
        return Deny(reason=_optional_str(payload, "stopReason") or reason)

    raw_decision = payload.get("decision")
    if raw_decision is None:
        return Allow(tool_input=tool_input, system_message=system_message, additional_context=additional_context)
    if not isinstance(raw_decision, str):
        raise MalformedOutput("decision must be a string")
    decision = raw_decision.strip().lower()
    if decision in _ALLOW_VALUES:
        return Allow(tool_input=tool_input, system_message=system_message, additional_context=additional_context)
    if decision in _DENY_VALUES:
        return Deny(reason=reason)
    if decision == "ask":
        return Ask(reason=reason)
    raise MalformedOutput(f"unknown decision {raw_decision!r}")


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedOutput(f"{key} must be a string")
    return value


def _duration_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))
