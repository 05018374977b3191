"""Tool result model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolResult:
    """Represents a tool invocation outcome."""

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False
    meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def text(cls, text: str, *, is_error: bool = False, **meta: Any) -> "ToolResult":
        return cls(content=[{"type": "text", "text": text}], is_error=is_error, meta=dict(meta))

    def as_text(self) -> str:
        parts: list[str] = []
        for item in self.content:
            if item.get("type") == "text" or "text" in item:
                parts.append(str(item.get("text", "")))
        return "\n".join(parts)

    def as_output(self) -> dict[str, Any]:
        return {"content": self.content, "is_error": self.is_error, "meta": self.meta}
