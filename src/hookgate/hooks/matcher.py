"""Tool name matcher for hook groups."""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass

from .errors import MatchError


_GLOB_CHARS = frozenset("*?[")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_RANGE_RE = re.compile(r"(.)-(.)", re.DOTALL)


@dataclass(frozen=True)
class CompiledMatcher:
    """Precompiled matcher. ``valid=False`` never matches anything."""

    pattern: str | None
    alternatives: tuple[str, ...] = ()
    regexes: tuple[re.Pattern[str] | None, ...] = ()
    valid: bool = True

    @property
    def matches_all(self) -> bool:
        return self.valid and not self.alternatives

    def matches(self, tool_name: str) -> bool:
        if not self.valid:
            return False
        if not self.alternatives:
            return True
        if tool_name == self.pattern:
            return True
        for alternative, regex in zip(self.alternatives, self.regexes):
            if tool_name == alternative:
                return True
            if regex is not None and regex.match(tool_name):
                return True
        return False


def compile_matcher(pattern: object) -> CompiledMatcher:
    if pattern is None:
        return CompiledMatcher(pattern=None)
    if not isinstance(pattern, str):
        raise MatchError(f"matcher 必須為字串：{pattern!r}")
    text = pattern.strip()
    if not text or text == "*":
        return CompiledMatcher(pattern=text)

    alternatives = tuple(part.strip() for part in text.split("|") if part.strip())
    if not alternatives:
        raise MatchError(f"matcher 沒有任何有效項目：{pattern!r}")
    regexes: list[re.Pattern[str] | None] = []
    for alternative in alternatives:
        if _CONTROL_RE.search(alternative):
            raise MatchError(f"matcher 含有控制字元：{pattern!r}")
        if not _GLOB_CHARS.intersection(alternative):
            regexes.append(None)
            continue
        _check_brackets(alternative, pattern)
        try:
            regexes.append(re.compile(fnmatch.translate(alternative)))
        except re.error as exc:
            raise MatchError(f"matcher 無法編譯：{pattern!r}（{exc}）") from exc
    return CompiledMatcher(pattern=text, alternatives=alternatives, regexes=tuple(regexes))


def _check_brackets(alternative: str, pattern: str) -> None:
    # fnmatch silently degrades these to literals or empty sets
    index = 0
    size = len(alternative)
    while index < size:
        if alternative[index] != "[":
            index += 1
            continue
        start = index + 1
        if start < size and alternative[start] == "!":
            start += 1
        if start < size and alternative[start] == "]":
            start += 1
        end = alternative.find("]", start)
        if end < 0:
            raise MatchError(f"matcher 的字元集合未閉合：{pattern!r}")
        body = alternative[index + 1 : end].lstrip("!")
        for low, high in _RANGE_RE.findall(body):
            if low > high:
                raise MatchError(f"matcher 的字元範圍無效：{low}-{high}（{pattern!r}）")
        index = end + 1


def never_matcher(pattern: object) -> CompiledMatcher:
    return CompiledMatcher(pattern=str(pattern), valid=False)


def match(pattern: object, tool_name: str) -> bool:
    """Return True when ``tool_name`` satisfies ``pattern``. Never raises."""
    try:
        return compile_matcher(pattern).matches(tool_name)
    except MatchError:
        return False
