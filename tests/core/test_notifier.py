from unittest.mock import MagicMock, patch

import pytest

from src.fileintake.core.event_system import (
    AttachmentFailedEvent,
    BatchGroupCompleteEvent,
    BatchGroupStartEvent,
    BatchSummaryEvent,
    CompressionAppliedEvent,
    EventManager,
    FileRejectedEvent,
)
from src.fileintake.core.notifier import ConsoleNotifier


@pytest.mark.asyncio
async def test_format_messages():
    notifier = ConsoleNotifier(show_progress=False)

    assert notifier.format(FileRejectedEvent("a.exe", "unsupported-type", "Тип не поддерживается")) == (
        "Файл отклонён: a.exe: Тип не поддерживается"
    )
    assert notifier.format(CompressionAppliedEvent("b.png", "image", 1536, 40)) == (
        "Сжато (изображение) b.png: −1.5 KB (40%)"
    )
    assert notifier.format(AttachmentFailedEvent("id", "c.pdf", "boom")) == "Не удалось обработать c.pdf: boom"
    assert notifier.format(BatchGroupStartEvent(1, 2, 3)) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("ready", "failed", "rejected", "expected"),
    [
        (2, 0, 0, "Добавлено файлов: 2, сэкономлено 1 KB"),
        (0, 1, 1, "Не удалось добавить ни одного файла (ошибок: 1, отклонено: 1)"),
        (1, 1, 0, "Добавлено 1, ошибок 1, отклонено 0, сэкономлено 1 KB"),
    ],
)
async def test_format_summary(ready: int, failed: int, rejected: int, expected: str):
    notifier = ConsoleNotifier(show_progress=False)
    event = BatchSummaryEvent(ready=ready, failed=failed, rejected=rejected, saved_bytes=1024, statistics={})

    assert notifier.format(event) == expected


@pytest.mark.asyncio
async def test_errors_go_to_stderr():
    notifier = ConsoleNotifier(show_progress=False)

    with patch("src.fileintake.core.notifier.log") as mock_log:
        notifier.handle(AttachmentFailedEvent("id", "c.pdf", "boom"))

    mock_log.assert_called_once_with("❌ Не удалось обработать c.pdf: boom", indent=1, err=True)


@pytest.mark.asyncio
async def test_progress_bar_per_batch():
    """Test that a bar opens on the first group and closes after the last one."""
    # Arrange
    event_manager = EventManager()
    notifier = ConsoleNotifier(show_progress=True)
    notifier.attach(event_manager)
    mock_bar = MagicMock()

    with patch("src.fileintake.core.notifier.tqdm", return_value=mock_bar) as mock_tqdm:
        # Act
        for index in (1, 2):
            await event_manager.emit(BatchGroupStartEvent(index, 2, 3))
            await event_manager.emit(BatchGroupCompleteEvent(index, 2, 3))

    # Assert
    mock_tqdm.assert_called_once()
    assert mock_tqdm.call_args.kwargs["total"] == 2
    assert mock_bar.update.call_count == 2
    mock_bar.close.assert_called_once()


@pytest.mark.asyncio
async def test_detach_stops_delivery():
    event_manager = EventManager()
    notifier = ConsoleNotifier(show_progress=False)
    notifier.attach(event_manager)
    notifier.detach(event_manager)

    with patch("src.fileintake.core.notifier.log") as mock_log:
        await event_manager.emit(FileRejectedEvent("a.exe", "unsupported-type", "nope"))

    mock_log.assert_not_called()
