from typing import Any

from tqdm import tqdm

from ..utils.log import log
from ..utils.size_format import format_file_size
from .event_system import (
    ALL_EVENTS,
    BATCH_GROUP_COMPLETE,
    BATCH_GROUP_START,
    Event,
    EventManager,
)

LEVEL_ICONS = {"success": "✅", "info": "ℹ️", "warning": "⚠️", "error": "❌"}
KIND_LABELS = {"image": "изображение", "pdf": "PDF"}


class ConsoleNotifier:
    """Prints pipeline notifications to the console, with a progress bar per batch."""

    def __init__(self, show_progress: bool = True) -> None:
        self.show_progress = show_progress
        self._pbar: tqdm[Any] | None = None

    def attach(self, event_manager: EventManager) -> None:
        event_manager.subscribe_all(self.handle)

    def detach(self, event_manager: EventManager) -> None:
        for event_name in ALL_EVENTS:
            event_manager.unsubscribe(event_name, self.handle)
        self._close_bar()

    def handle(self, event: Event) -> None:
        message = self.format(event)
        if message is None:
            self._track_progress(event)
            return
        icon = LEVEL_ICONS.get(event.level, "•")
        log(f"{icon} {message}", indent=1, err=event.level == "error")

    def format(self, event: Event) -> str | None:
        data = event.data
        match event.name:
            case "FILE_REJECTED":
                return f"Файл отклонён: {data['file_name']}: {data['message']}"
            case "COMPRESSION_APPLIED":
                label = KIND_LABELS.get(data["kind"], data["kind"])
                return (
                    f"Сжато ({label}) {data['file_name']}: "
                    f"−{format_file_size(data['saved_bytes'])} ({data['saved_percent']}%)"
                )
            case "ATTACHMENT_FAILED":
                return f"Не удалось обработать {data['file_name']}: {data['error']}"
            case "BATCH_SUMMARY":
                self._close_bar()
                return self._format_summary(data)
            case "ATTACHMENT_REMOVED":
                return f"Файл удалён из списка: {data['file_name']}"
            case "ATTACHMENTS_CLEARED":
                return f"Список очищен, удалено файлов: {data['count']}"
            case _:
                return None

    def _format_summary(self, data: dict[str, Any]) -> str:
        ready, failed, rejected = data["ready"], data["failed"], data["rejected"]
        saved = format_file_size(data["saved_bytes"])
        if failed == 0 and rejected == 0:
            return f"Добавлено файлов: {ready}, сэкономлено {saved}"
        if ready == 0:
            return f"Не удалось добавить ни одного файла (ошибок: {failed}, отклонено: {rejected})"
        return f"Добавлено {ready}, ошибок {failed}, отклонено {rejected}, сэкономлено {saved}"

    def _track_progress(self, event: Event) -> None:
        if not self.show_progress:
            return
        data = event.data
        if event.name == BATCH_GROUP_START and self._pbar is None:
            self._pbar = tqdm(
                total=data["total_groups"],
                unit="гр.",
                desc="  🗜️ ",
                ncols=80,
                bar_format="{desc}{bar}| {n_fmt} / {total_fmt} {unit} | {elapsed} < {remaining}",
            )
        elif event.name == BATCH_GROUP_COMPLETE and self._pbar is not None:
            self._pbar.update(1)
            if data["group_index"] >= data["total_groups"]:
                self._close_bar()

    def _close_bar(self) -> None:
        if self._pbar is not None:
            self._pbar.close()
            self._pbar = None
