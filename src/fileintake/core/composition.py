import mimetypes
from pathlib import Path
from typing import Final

import aiofiles
import aiofiles.os

from ..config.settings import Settings
from ..models import Attachment, BatchStatistics, DiskFile
from ..utils.log import log
from .blob_registry import BlobRegistry
from .event_system import EventManager
from .notifier import ConsoleNotifier
from .store import AttachmentStore

WRITE_CHUNK_SIZE: Final[int] = 64 * 1024
OUTPUT_SUFFIXES: Final[dict[str, str]] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


def output_suffix(mime_type: str | None, fallback: str) -> str:
    """File extension for a payload type; keeps the submitted one for unknown types."""
    if mime_type is None:
        return fallback
    return OUTPUT_SUFFIXES.get(mime_type) or mimetypes.guess_extension(mime_type) or fallback


class IntakeApp:
    """Command-line flow: read files from disk, ingest them, optionally write the payloads out."""

    def __init__(
        self,
        store: AttachmentStore,
        event_manager: EventManager,
        notifier: ConsoleNotifier,
        output_dir: Path | None = None,
    ) -> None:
        self.store = store
        self.event_manager = event_manager
        self.notifier = notifier
        self.output_dir = output_dir

    async def run(self, paths: list[Path]) -> BatchStatistics:
        self.notifier.attach(self.event_manager)
        try:
            async with self.store:
                files = [await DiskFile.from_path(path) for path in paths]
                log(f"📥 Принято к загрузке файлов: {len(files)}", padding_top=1)
                attachments = await self.store.add(files)

                if self.output_dir is not None:
                    await self._write_outputs(attachments, self.output_dir)

                stats = self.store.statistics()
                self._print_statistics(stats)
                return stats
        finally:
            self.notifier.detach(self.event_manager)
            self.event_manager.stop()

    async def _write_outputs(self, attachments: list[Attachment], output_dir: Path) -> None:
        await aiofiles.os.makedirs(output_dir, exist_ok=True)
        taken: set[str] = set()
        for attachment in attachments:
            if attachment.status != "ready" or attachment.url is None:
                continue
            payload = self.store.registry.resolve(attachment.url)
            if payload is None:
                continue

            target = await self._unique_target(output_dir, attachment, taken)
            async with aiofiles.open(target, "wb") as f:
                written = 0
                for start in range(0, len(payload), WRITE_CHUNK_SIZE):
                    chunk = payload[start : start + WRITE_CHUNK_SIZE]
                    await f.write(chunk)
                    written += len(chunk)
                    self.store.report_progress(attachment.id, written * 100 // len(payload))
            log(f"💾 Записан {target}", indent=2)

    async def _unique_target(self, output_dir: Path, attachment: Attachment, taken: set[str]) -> Path:
        """Output path named after the payload type, numbered on collision with this run or the disk."""
        source = Path(attachment.name)
        suffix = output_suffix(self.store.registry.mime_type(attachment.url or ""), source.suffix)
        candidate = f"{source.stem}{suffix}"
        counter = 1
        while candidate in taken or await aiofiles.os.path.exists(output_dir / candidate):
            candidate = f"{source.stem} ({counter}){suffix}"
            counter += 1
        taken.add(candidate)
        return output_dir / candidate

    def _print_statistics(self, stats: BatchStatistics) -> None:
        log("📊 Итоги:", padding_top=1)
        log(f"- файлов: {stats.total_files} (готово {stats.ready_count}, ошибок {stats.error_count})", indent=1)
        log(f"- сжато: {stats.compressed_files}, средний коэффициент {stats.average_compression_ratio:.2f}", indent=1)
        log(f"- было {stats.total_original_size} байт, стало {stats.total_compressed_size} байт", indent=1)
        log(f"- сэкономлено: {stats.total_saved_formatted}", indent=1)


class DefaultIntakeComposer:
    def compose_app(self, settings: Settings, output_dir: Path | None = None, show_progress: bool = True) -> IntakeApp:
        output_dir = output_dir or settings.app.output_dir
        intake = settings.intake
        if output_dir is not None and intake.upload_progress_share == 0:
            intake = intake.model_copy(update={"upload_progress_share": 50})

        event_manager = EventManager()
        store = AttachmentStore(intake, event_manager, registry=BlobRegistry())
        notifier = ConsoleNotifier(show_progress=show_progress and settings.app.show_progress)

        return IntakeApp(
            store=store,
            event_manager=event_manager,
            notifier=notifier,
            output_dir=output_dir,
        )
