"""Message and result types exchanged with a text-completion backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str

    def to_api(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionOptions:
    temperature: float = 0.85
    max_tokens: int = 900

    def hotter(self, temperature: float) -> CompletionOptions:
        return CompletionOptions(temperature=max(self.temperature, temperature), max_tokens=self.max_tokens)


@dataclass
class Completion:
    content: str
    model: str = ""
    id: str = ""
    usage: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> Completion:
        content = data.get("content", "")
        if not isinstance(content, str):
            content = "" if content is None else str(content)
        usage = data.get("usage") or {}
        return cls(
            content=content,
            model=str(data.get("model", "") or ""),
            id=str(data.get("id", "") or ""),
            usage=usage if isinstance(usage, dict) else {},
        )
