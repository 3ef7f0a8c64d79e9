from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

CompressionKind = Literal["image", "pdf", "none"]


class CompressionOutcome(BaseModel):
    """Result of compressing one file. Always carries a usable payload."""

    payload: bytes = Field(repr=False)
    type: str
    original_size: int
    compressed_size: int
    kind: CompressionKind = "none"
    compression_applied: bool = False
    savings_ratio: float = 0.0

    @property
    def size_ratio(self) -> float | None:
        """compressed / original, only meaningful when compression was applied."""
        if not self.compression_applied or self.original_size <= 0:
            return None
        return self.compressed_size / self.original_size

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.compressed_size

    @classmethod
    def unchanged(cls, payload: bytes, type: str, kind: CompressionKind = "none") -> CompressionOutcome:
        return cls(
            payload=payload,
            type=type,
            original_size=len(payload),
            compressed_size=len(payload),
            kind=kind,
        )
