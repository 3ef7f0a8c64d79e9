from collections.abc import Callable, Iterable

from ..models import Attachment, BatchStatistics
from ..utils.size_format import format_file_size

ProgressCallback = Callable[[int], None]


def clamp_progress(value: float) -> int:
    return int(max(0, min(100, round(value))))


class ProgressAggregator:
    """Keeps one 0-100 progress value per in-flight file. Values never go backwards."""

    def __init__(self) -> None:
        self._progress: dict[str, int] = {}

    def update(self, attachment_id: str, value: float) -> int:
        current = self._progress.get(attachment_id, 0)
        new_value = max(current, clamp_progress(value))
        self._progress[attachment_id] = new_value
        return new_value

    def get(self, attachment_id: str) -> int:
        return self._progress.get(attachment_id, 0)

    def reset(self, attachment_id: str) -> None:
        self._progress[attachment_id] = 0

    def discard(self, attachment_id: str) -> None:
        self._progress.pop(attachment_id, None)

    def clear(self) -> None:
        self._progress.clear()


def scale_progress(callback: ProgressCallback, start: int, end: int) -> ProgressCallback:
    """Maps a 0-100 sub-progress into the ``[start, end]`` window of ``callback``."""

    def _scaled(value: int) -> None:
        callback(start + (end - start) * clamp_progress(value) // 100)

    return _scaled


def compute_statistics(attachments: Iterable[Attachment]) -> BatchStatistics:
    """Single pass over the attachments; the ratio mean ignores files that were not compressed."""
    stats = BatchStatistics()
    ratio_sum = 0.0

    for attachment in attachments:
        stats.total_files += 1
        stats.total_original_size += attachment.original_size
        stats.total_compressed_size += attachment.size

        if attachment.compression_applied and attachment.compression_ratio is not None:
            stats.compressed_files += 1
            ratio_sum += attachment.compression_ratio

        match attachment.status:
            case "pending":
                stats.pending_count += 1
            case "processing":
                stats.processing_count += 1
            case "ready":
                stats.ready_count += 1
            case "error":
                stats.error_count += 1

    stats.total_saved = stats.total_original_size - stats.total_compressed_size
    stats.total_saved_formatted = format_file_size(stats.total_saved)
    stats.average_compression_ratio = ratio_sum / stats.compressed_files if stats.compressed_files else 0.0
    return stats
