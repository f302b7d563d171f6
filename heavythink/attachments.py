# heavythink/attachments.py
"""
Single-file attachments for a user turn.
"""

from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from heavythink.errors import AttachmentTooLarge
from heavythink.memory import Part

MAX_ATTACHMENT_BYTES = 4 * 1024 * 1024


@dataclass(frozen=True)
class Attachment:
    data: str  # base64
    mime_type: str
    name: str

    @classmethod
    def from_path(cls, path: str, max_bytes: int = MAX_ATTACHMENT_BYTES) -> "Attachment":
        """Read a file into an attachment, rejecting it if it exceeds ``max_bytes``."""
        fp = Path(path).expanduser()
        size = fp.stat().st_size
        if size > max_bytes:
            raise AttachmentTooLarge(fp.name, size, max_bytes)
        mime, _ = mimetypes.guess_type(fp.name)
        return cls(
            data=base64.b64encode(fp.read_bytes()).decode("ascii"),
            mime_type=mime or "application/octet-stream",
            name=fp.name,
        )

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_part(self) -> Part:
        return Part.from_binary(self.mime_type, self.data)


def build_user_parts(query: str, attachment: Optional[Attachment] = None) -> list[Part]:
    """Binary part first, then the query text, as the user turn carries them."""
    parts: list[Part] = []
    if attachment is not None:
        parts.append(attachment.to_part())
    if query:
        parts.append(Part.from_text(query))
    return parts
