from __future__ import annotations

import mimetypes
import time
from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import BaseModel, Field

DEFAULT_MIME = "application/octet-stream"


def _now_ms() -> int:
    return int(time.time() * 1000)


class IncomingFile(BaseModel, ABC):
    """A raw file handed to the pipeline by the caller."""

    name: str
    size: int = Field(ge=0)
    type: str = DEFAULT_MIME
    last_modified: int = Field(default_factory=_now_ms)

    @property
    def signature(self) -> tuple[str, int, str]:
        return (self.name, self.size, self.type)

    @abstractmethod
    async def read(self) -> bytes:
        """Returns the full contents of the file."""


class MemoryFile(IncomingFile):
    """A file whose bytes are already resident in memory."""

    data: bytes = Field(repr=False)

    @classmethod
    def from_bytes(
        cls, name: str, data: bytes, type: str | None = None, last_modified: int | None = None
    ) -> MemoryFile:
        return cls(
            name=name,
            size=len(data),
            type=type or guess_mime(name),
            last_modified=last_modified if last_modified is not None else _now_ms(),
            data=data,
        )

    async def read(self) -> bytes:
        return self.data


class DiskFile(IncomingFile):
    """A file on the local filesystem, read lazily."""

    path: Path

    @classmethod
    async def from_path(cls, path: Path) -> DiskFile:
        stat = await aiofiles.os.stat(path)
        return cls(
            name=path.name,
            size=stat.st_size,
            type=guess_mime(path.name),
            last_modified=int(stat.st_mtime * 1000),
            path=path,
        )

    async def read(self) -> bytes:
        async with aiofiles.open(self.path, "rb") as f:
            return await f.read()


def guess_mime(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return (guessed or DEFAULT_MIME).lower()
