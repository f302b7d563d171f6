# heavythink/session.py
"""
ChatSession — owns the conversation, the mode toggles and the pending
attachment, and hands the orchestrator a snapshot for each submission.
"""

from __future__ import annotations

from typing import Optional

from heavythink import log as _log
from heavythink.attachments import MAX_ATTACHMENT_BYTES, Attachment, build_user_parts
from heavythink.memory import ConversationHistory
from heavythink.orchestration import OrchestrationResult, Orchestrator, StageListener

FAILURE_MESSAGE = "Sorry, I encountered an error. Please try again."


class ChatSession:
    """
    One user's chat.

    Parameters
    ----------
    orchestrator : Orchestrator
        Pipeline used for every submission.
    deep_think : bool
        Start with the deep topology selected.
    elaborate : bool
        Use the elaboration topology when deep think is off.
    max_attachment_bytes : int
        Size cap applied by ``attach``.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        deep_think: bool = False,
        elaborate: bool = False,
        max_attachment_bytes: int = MAX_ATTACHMENT_BYTES,
        name: str = "heavy",
    ):
        self.name = name
        self.orchestrator = orchestrator
        self.history = ConversationHistory()
        self.deep_think = deep_think
        self.elaborate = elaborate
        self.max_attachment_bytes = max_attachment_bytes
        self.pending_attachment: Optional[Attachment] = None
        self.last_result: Optional[OrchestrationResult] = None

    @property
    def progress(self):
        return self.orchestrator.tracker

    # ── Toggles / attachment ───────────────────────────────────────────

    def toggle_deep_think(self) -> bool:
        self.deep_think = not self.deep_think
        return self.deep_think

    def toggle_elaborate(self) -> bool:
        self.elaborate = not self.elaborate
        return self.elaborate

    def attach(self, path: str) -> Attachment:
        """Load a file as the pending attachment (raises AttachmentTooLarge)."""
        self.pending_attachment = Attachment.from_path(path, max_bytes=self.max_attachment_bytes)
        return self.pending_attachment

    def detach(self) -> None:
        self.pending_attachment = None

    def clear(self) -> None:
        self.history.clear()
        self.pending_attachment = None
        self.last_result = None

    # ── Submission ─────────────────────────────────────────────────────

    def submit(
        self,
        query: str,
        attachment: Optional[Attachment] = None,
        on_stage: Optional[StageListener] = None,
    ) -> str:
        """
        Run one query through the pipeline and append the answer.

        If the run fails for any reason the generic apology is appended
        instead and returned, so every user turn is followed by an assistant
        turn; the details only go to the log.
        """
        query = query.strip()
        attachment = attachment or self.pending_attachment
        if not query and attachment is None:
            raise ValueError("Empty submission: provide a query or an attachment")

        self.pending_attachment = None
        prior = self.history.snapshot()
        self.history.add_user(build_user_parts(query, attachment))

        mode = "deep think" if self.deep_think else ("elaborate" if self.elaborate else "standard")
        _log.session(self.name, f"{mode}  \"{query[:80]}\"")

        try:
            result = self.orchestrator.run(
                prior,
                query,
                attachment=attachment,
                deep=self.deep_think,
                elaborate=self.elaborate,
                on_stage=on_stage,
            )
        except Exception as e:
            _log.error(f"Run failed: {type(e).__name__}: {e}")
            self.last_result = None
            self.history.add_assistant(FAILURE_MESSAGE)
            return FAILURE_MESSAGE

        self.last_result = result
        self.history.add_assistant(result.text)
        return result.text
