from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

AttachmentStatus = Literal["pending", "processing", "ready", "error"]

# error -> processing is the only re-entrant edge (explicit retry)
ALLOWED_TRANSITIONS: dict[AttachmentStatus, frozenset[AttachmentStatus]] = {
    "pending": frozenset({"processing", "error"}),
    "processing": frozenset({"ready", "error"}),
    "ready": frozenset(),
    "error": frozenset({"processing"}),
}


class Dimensions(BaseModel):
    width: int
    height: int


class AttachmentMetadata(BaseModel):
    last_modified: int
    dimensions: Dimensions | None = None


class Attachment(BaseModel):
    """The canonical record of one ingested file."""

    id: str
    name: str
    size: int
    type: str
    original_type: str
    original_size: int
    url: str | None = None
    inline_preview: str | None = None
    compression_applied: bool = False
    compression_ratio: float | None = None
    status: AttachmentStatus = "pending"
    error: str | None = None
    upload_progress: int = Field(default=0, ge=0, le=100)
    metadata: AttachmentMetadata

    @property
    def saved_bytes(self) -> int:
        return max(self.original_size - self.size, 0)

    def can_transition_to(self, status: AttachmentStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]
