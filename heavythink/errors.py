# heavythink/errors.py
"""
Error types for the orchestration pipeline.

Nothing here is retried. An ``UpstreamError`` anywhere aborts the whole run;
the session turns it into a generic apology for the user.
"""

from __future__ import annotations

from typing import Optional


class HeavyError(Exception):
    """Base exception for heavythink."""


class UpstreamError(HeavyError):
    """
    Any failure from the completion service: network, auth, quota,
    malformed output.

    Attributes:
        provider: Provider ID the call was sent to (may be empty)
        original_error: Underlying SDK/transport exception, if any
    """

    def __init__(
        self,
        message: str,
        provider: str = "",
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.provider = provider
        self.original_error = original_error
        super().__init__(message)


class StageFailedError(UpstreamError):
    """A unit inside a stage failed, so the whole stage failed."""

    def __init__(self, stage: str, index: int, original_error: BaseException) -> None:
        self.stage = stage
        self.index = index
        provider = getattr(original_error, "provider", "")
        super().__init__(
            f"Stage '{stage}' unit {index} failed: {original_error}",
            provider=provider,
            original_error=original_error,
        )


class ValidationUnavailable(HeavyError):
    """A syntax checker cannot assess this snippet (checker disabled or missing)."""


class AttachmentTooLarge(HeavyError):
    """Attachment exceeds the size cap; rejected before orchestration."""

    def __init__(self, name: str, size: int, limit: int) -> None:
        self.name = name
        self.size = size
        self.limit = limit
        super().__init__(
            f"Attachment '{name}' is {size:,} bytes; limit is {limit:,} bytes"
        )
