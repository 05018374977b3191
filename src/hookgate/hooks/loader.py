"""Hook registry loader and validator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import yaml

from .errors import HookConfigError, MatchError
from .matcher import CompiledMatcher, compile_matcher, never_matcher
from .types import DEFAULT_TIMEOUT_MS, HookDescriptor, HookEvent, HookGroup


logger = logging.getLogger(__name__)

_RESERVED_KEYS = {"disabled"}


@dataclass(frozen=True)
class CompiledGroup:
    group: HookGroup
    matcher: CompiledMatcher


@dataclass(frozen=True)
class HookRegistry:
    """Read-only mapping of event name to ordered, precompiled hook groups."""

    groups: Mapping[HookEvent, tuple[CompiledGroup, ...]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "groups", MappingProxyType(dict(self.groups)))

    @classmethod
    def empty(cls) -> "HookRegistry":
        return cls(groups={})

    def is_empty(self) -> bool:
        return not any(self.groups.values())

    def groups_for(self, event: HookEvent | str) -> tuple[CompiledGroup, ...]:
        try:
            hook_event = HookEvent.parse(event)
        except ValueError:
            return ()
        return self.groups.get(hook_event, ())

    def hooks_for(self, event: HookEvent | str, tool_name: str) -> list[HookDescriptor]:
        """Flatten matching groups into one list: group order, then in-group order."""
        hooks: list[HookDescriptor] = []
        for compiled in self.groups_for(event):
            if compiled.matcher.matches(tool_name):
                hooks.extend(compiled.group.hooks)
        return hooks


def _ensure_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    return [str(value)]


def _validate_timeout(value: Any, default_timeout_ms: int) -> int:
    if value is None:
        return default_timeout_ms
    if isinstance(value, bool):
        raise HookConfigError("timeout 必須為正整數（毫秒）")
    try:
        timeout_ms = int(value)
    except (TypeError, ValueError) as exc:
        raise HookConfigError("timeout 必須為正整數（毫秒）") from exc
    if timeout_ms <= 0:
        raise HookConfigError("timeout 必須大於 0")
    return timeout_ms


def _validate_descriptor(payload: Any, default_timeout_ms: int) -> HookDescriptor:
    if not isinstance(payload, dict):
        raise HookConfigError("hook 必須為物件")
    hook_type = payload.get("type", "command")
    if hook_type != "command":
        raise HookConfigError(f"不支援的 hook type：{hook_type}")
    command = payload.get("command")
    if not isinstance(command, str) or not command.strip():
        raise HookConfigError("command 不可為空")
    env_payload = payload.get("env") or {}
    if not isinstance(env_payload, dict):
        raise HookConfigError("env 必須為物件")
    name = payload.get("name")
    if name is not None and not isinstance(name, str):
        raise HookConfigError("name 必須為字串")
    return HookDescriptor(
        command=command,
        timeout_ms=_validate_timeout(payload.get("timeout"), default_timeout_ms),
        name=name or command,
        env={str(key): str(val) for key, val in env_payload.items()},
    )


def _compile_group_matcher(event_name: str, pattern: Any) -> CompiledMatcher:
    try:
        return compile_matcher(pattern)
    except MatchError as exc:
        logger.error("Hook matcher 無效，已視為不匹配（%s）：%s", event_name, exc)
        return never_matcher(pattern)


def _load_group(
    event_name: str,
    payload: Any,
    default_timeout_ms: int,
    disabled: set[str],
) -> CompiledGroup:
    if not isinstance(payload, dict):
        raise HookConfigError("hook group 必須為物件")
    hooks_payload = payload.get("hooks") or []
    if not isinstance(hooks_payload, list):
        raise HookConfigError("hooks 必須為陣列")
    descriptors: list[HookDescriptor] = []
    for index, hook_payload in enumerate(hooks_payload):
        try:
            descriptor = _validate_descriptor(hook_payload, default_timeout_ms)
        except HookConfigError as exc:
            logger.error("Hook %s[%s] 設定無效，已略過：%s", event_name, index, exc)
            continue
        if descriptor.name in disabled or descriptor.command in disabled:
            logger.info("Hook %s 已停用，略過", descriptor.name)
            continue
        descriptors.append(descriptor)
    pattern = payload.get("matcher")
    group = HookGroup(matcher=pattern if isinstance(pattern, str) else None, hooks=tuple(descriptors))
    return CompiledGroup(group=group, matcher=_compile_group_matcher(event_name, pattern))


def load_registry(
    hooks_config: Mapping[str, Any] | None,
    *,
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> HookRegistry:
    """Validate the ``hooks`` settings section and precompile its matchers.

    Invalid groups and descriptors are logged and skipped; an invalid matcher
    keeps its group but never matches.
    """
    if not hooks_config:
        return HookRegistry.empty()
    if not isinstance(hooks_config, Mapping):
        raise HookConfigError("hooks 設定必須為物件")

    disabled = set(_ensure_list(hooks_config.get("disabled")))
    compiled: dict[HookEvent, tuple[CompiledGroup, ...]] = {}
    for event_name, groups_payload in hooks_config.items():
        if event_name in _RESERVED_KEYS:
            continue
        try:
            hook_event = HookEvent.parse(event_name)
        except ValueError:
            logger.warning("未知的 hook 事件，已略過：%s", event_name)
            continue
        if not isinstance(groups_payload, list):
            logger.error("Hook 事件 %s 必須為陣列，已略過", event_name)
            continue
        groups: list[CompiledGroup] = []
        for index, group_payload in enumerate(groups_payload):
            try:
                groups.append(_load_group(str(event_name), group_payload, default_timeout_ms, disabled))
            except HookConfigError as exc:
                logger.error("Hook group %s[%s] 設定無效，已略過：%s", event_name, index, exc)
        compiled[hook_event] = tuple(groups)
    return HookRegistry(groups=compiled)


def load_registry_file(path: Path, *, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> HookRegistry:
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise HookConfigError(f"讀取 hook 設定失敗：{path}") from exc
    if not isinstance(payload, dict):
        raise HookConfigError("hook 設定 YAML 必須為物件")
    hooks_config = payload.get("hooks", payload)
    return load_registry(hooks_config, default_timeout_ms=default_timeout_ms)


def iter_descriptors(registry: HookRegistry) -> Iterable[tuple[HookEvent, CompiledGroup, HookDescriptor]]:
    for hook_event, groups in registry.groups.items():
        for compiled in groups:
            for descriptor in compiled.group.hooks:
                yield hook_event, compiled, descriptor
