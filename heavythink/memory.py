# heavythink/memory.py
"""
Conversation data model: parts, turns, and the session's history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class Part:
    """Either a text part or a base64 binary part (never both)."""

    text: Optional[str] = None
    mime_type: Optional[str] = None
    data: Optional[str] = None  # base64

    def __post_init__(self):
        if (self.text is None) == (self.data is None):
            raise ValueError("Part must carry exactly one of text or binary data")
        if self.data is not None and not self.mime_type:
            raise ValueError("Binary part requires a mime_type")

    @classmethod
    def from_text(cls, text: str) -> "Part":
        return cls(text=text)

    @classmethod
    def from_binary(cls, mime_type: str, data: str) -> "Part":
        return cls(mime_type=mime_type, data=data)

    @property
    def is_binary(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class Turn:
    role: str  # "user" | "assistant"
    parts: tuple[Part, ...]
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if not p.is_binary)


class ConversationHistory:
    """
    Append-only list of turns for one session.

    The orchestrator never sees this object, only ``snapshot()``.
    """

    def __init__(self):
        self._turns: list[Turn] = []

    def add_user(self, parts: list[Part]) -> Turn:
        turn = Turn(role=USER, parts=tuple(parts))
        self._turns.append(turn)
        return turn

    def add_assistant(self, text: str) -> Turn:
        turn = Turn(role=ASSISTANT, parts=(Part.from_text(text),))
        self._turns.append(turn)
        return turn

    def snapshot(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def clear(self) -> None:
        self._turns = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(self._turns)
