# heavythink/repair.py
"""
Single-shot code repair for a final answer.

Blocks are checked in document order. The first block that gets a
diagnostic is sent back for one correction, and the model's raw reply
replaces exactly that block's span. Later blocks are left alone even if
they are broken too: at most one block is corrected per answer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from heavythink import context, fences, log
from heavythink.errors import UpstreamError
from heavythink.fences import FencedBlock
from heavythink.memory import Turn
from heavythink.stage import CompletionClient
from heavythink.validator import SyntaxValidator


@dataclass(frozen=True)
class RepairOutcome:
    text: str
    block: Optional[FencedBlock] = None
    diagnostic: Optional[str] = None

    @property
    def repaired(self) -> bool:
        return self.block is not None


class CodeRepairer:
    def __init__(self, client: CompletionClient, validator: SyntaxValidator):
        self._client = client
        self._validator = validator

    def find_broken_block(self, text: str) -> Optional[tuple[FencedBlock, str]]:
        """First block (document order) with a diagnostic, and the diagnostic."""
        for block in fences.scan(text):
            diagnostic = self._validator.check(block.language, block.body)
            if diagnostic:
                return block, diagnostic
            log.detail(f"{block.language} block at {block.start}: no diagnostic")
        return None

    def repair(
        self,
        text: str,
        history: Sequence[Turn] = (),
        on_repaired: Optional[Callable[[], None]] = None,
    ) -> RepairOutcome:
        found = self.find_broken_block(text)
        if found is None:
            return RepairOutcome(text)

        block, diagnostic = found
        log.warn(f"{block.language} block has a syntax error: {diagnostic}")
        log.step("Correcting code error...")

        request = context.repair_request(block.language, block.body, diagnostic)
        corrected = str(self._client.complete(history, request.parts, request.system))
        if not corrected.strip():
            raise UpstreamError("code correction returned an empty completion")

        if on_repaired is not None:
            on_repaired()
        log.ok(f"Replaced {block.language} block ({len(block.body):,} → {len(corrected):,} chars)")
        return RepairOutcome(fences.replace_block(text, block, corrected), block, diagnostic)
