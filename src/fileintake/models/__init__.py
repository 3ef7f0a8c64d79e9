from .attachment import ALLOWED_TRANSITIONS, Attachment, AttachmentMetadata, AttachmentStatus, Dimensions
from .compression import CompressionKind, CompressionOutcome
from .incoming_file import DiskFile, IncomingFile, MemoryFile, guess_mime
from .statistics import BatchStatistics

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Attachment",
    "AttachmentMetadata",
    "AttachmentStatus",
    "Dimensions",
    "CompressionKind",
    "CompressionOutcome",
    "DiskFile",
    "IncomingFile",
    "MemoryFile",
    "guess_mime",
    "BatchStatistics",
]
