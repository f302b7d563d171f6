# heavythink/fences.py
"""
Fenced code block scanning and span-aware substitution.

A block is a language-tagged fence: three backticks, a tag, a newline, the
body, and the next three backticks. Untagged fences are not reported; they
are neither runnable nor checkable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Tags the renderer offers to run; checkable tags are a subset (see validator)
RUNNABLE_LANGUAGES = ("python", "py", "javascript", "js", "html")

_FENCE_RE = re.compile(r"```([\w+#.-]+)[ \t]*\n(.*?)```", re.DOTALL)


@dataclass(frozen=True)
class FencedBlock:
    start: int
    end: int
    language: str
    body: str

    @property
    def span(self) -> tuple[int, int]:
        return self.start, self.end

    @property
    def runnable(self) -> bool:
        return self.language.lower() in RUNNABLE_LANGUAGES


def scan(text: str) -> list[FencedBlock]:
    """All tagged fenced blocks in document order."""
    return [
        FencedBlock(m.start(), m.end(), m.group(1), m.group(2))
        for m in _FENCE_RE.finditer(text)
    ]


def replace_block(text: str, block: FencedBlock, replacement: str) -> str:
    """Replace exactly ``block``'s span of ``text`` with ``replacement``."""
    if text[block.start:block.end][:3] != "```":
        raise ValueError(f"Span {block.span} does not point at a fenced block")
    return text[:block.start] + replacement + text[block.end:]
