"""Lifecycle store: the single owner of attachment records and their local handles.

Every change to the held records goes through ``_dispatch``, which never awaits. Async
completions therefore always see the current state and a completion for a record that was
removed in the meantime is discarded, with its freshly allocated handle revoked.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from types import TracebackType
from typing import Final

from ..compression import classify
from ..config.settings import IntakeConfig
from ..exceptions import CannotRetryError, IntakeError
from ..models import Attachment, AttachmentStatus, BatchStatistics, IncomingFile
from ..processing.builder import build_pending_attachment
from ..processing.file_processor import FileProcessor
from ..utils.log import log
from ..utils.size_format import percent
from .blob_registry import BlobRegistry
from .event_system import (
    AttachmentFailedEvent,
    AttachmentRemovedEvent,
    AttachmentsClearedEvent,
    BatchSummaryEvent,
    CompressionAppliedEvent,
    EventManager,
    FileRejectedEvent,
)
from .progress import ProgressAggregator, clamp_progress, compute_statistics, scale_progress
from .scheduler import BatchScheduler, IntakeJob
from .validator import validate_batch

# Savings below this are not worth a notification
NOTABLE_SAVINGS_BYTES: Final[int] = 10 * 1024


@dataclass(frozen=True)
class Insert:
    attachment: Attachment


@dataclass(frozen=True)
class StartProcessing:
    attachment_id: str


@dataclass(frozen=True)
class ReportProgress:
    attachment_id: str
    value: int


@dataclass(frozen=True)
class Complete:
    attachment: Attachment


@dataclass(frozen=True)
class Fail:
    attachment_id: str
    error: str


@dataclass(frozen=True)
class Remove:
    attachment_id: str


@dataclass(frozen=True)
class Clear:
    pass


Command = Insert | StartProcessing | ReportProgress | Complete | Fail | Remove | Clear


class AttachmentStore:
    def __init__(
        self,
        config: IntakeConfig,
        event_manager: EventManager,
        registry: BlobRegistry | None = None,
        scheduler: BatchScheduler | None = None,
        processor: FileProcessor | None = None,
    ) -> None:
        self.config = config
        self.event_manager = event_manager
        self.registry = registry if registry is not None else BlobRegistry()
        self.scheduler = (
            scheduler
            if scheduler is not None
            else BatchScheduler(
                event_manager, concurrency=config.concurrency, group_delay_seconds=config.group_delay_seconds
            )
        )
        self.processor = processor if processor is not None else FileProcessor(self.registry, config)
        self._attachments: dict[str, Attachment] = {}
        self._sources: dict[str, IncomingFile] = {}
        self._progress = ProgressAggregator()
        self._active_batches = 0
        self._closed = False

    # --- queries ---

    @property
    def attachments(self) -> list[Attachment]:
        return list(self._attachments.values())

    @property
    def is_processing(self) -> bool:
        return self._active_batches > 0 or any(a.status == "processing" for a in self._attachments.values())

    def get(self, attachment_id: str) -> Attachment | None:
        return self._attachments.get(attachment_id)

    def has_source(self, attachment_id: str) -> bool:
        return attachment_id in self._sources

    def statistics(self) -> BatchStatistics:
        return compute_statistics(self._attachments.values())

    # --- mutation entry point ---

    def _dispatch(self, command: Command) -> Attachment | None:
        match command:
            case Insert(attachment=attachment):
                self._attachments[attachment.id] = attachment
                return attachment

            case StartProcessing(attachment_id=attachment_id):
                current = self._attachments.get(attachment_id)
                if current is None or not self._can_transition(current, "processing"):
                    return None
                self._progress.reset(attachment_id)
                return self._replace(current, status="processing", error=None, upload_progress=0)

            case ReportProgress(attachment_id=attachment_id, value=value):
                current = self._attachments.get(attachment_id)
                if current is None or current.status not in ("processing", "ready"):
                    return None
                return self._replace(current, upload_progress=self._progress.update(attachment_id, value))

            case Complete(attachment=attachment):
                current = self._attachments.get(attachment.id)
                if current is None or current.status != "processing":
                    self.registry.revoke(attachment.url)
                    return None
                self._sources.pop(attachment.id, None)
                progress = self._progress.get(attachment.id)
                return self._replace(attachment, upload_progress=progress)

            case Fail(attachment_id=attachment_id, error=error):
                current = self._attachments.get(attachment_id)
                if current is None or not self._can_transition(current, "error"):
                    return None
                self.registry.revoke(current.url)
                if not self.config.retain_sources:
                    self._sources.pop(attachment_id, None)
                return self._replace(current, status="error", error=error, url=None, inline_preview=None)

            case Remove(attachment_id=attachment_id):
                removed = self._attachments.pop(attachment_id, None)
                self._sources.pop(attachment_id, None)
                self._progress.discard(attachment_id)
                if removed is not None:
                    self.registry.revoke(removed.url)
                return removed

            case Clear():
                for attachment in self._attachments.values():
                    self.registry.revoke(attachment.url)
                self._attachments.clear()
                self._sources.clear()
                self._progress.clear()
                return None

    def _can_transition(self, attachment: Attachment, status: AttachmentStatus) -> bool:
        if attachment.can_transition_to(status):
            return True
        log(f"⚠️ Недопустимый переход {attachment.status} → {status} для {attachment.name}, пропускаю", indent=2)
        return False

    def _replace(self, attachment: Attachment, **changes: object) -> Attachment:
        updated = attachment.model_copy(update=changes)
        self._attachments[updated.id] = updated
        return updated

    # --- operations ---

    async def add(self, files: Iterable[IncomingFile]) -> list[Attachment]:
        """Validates and processes a batch. Returns the batch's records in submission order."""
        if self._closed:
            raise IntakeError("Хранилище закрыто")

        files = list(files)
        if not files:
            return []

        report = validate_batch(files, self._attachments.values(), self.config)

        jobs: list[IntakeJob] = []
        for file in report.accepted:
            attachment_id = uuid.uuid4().hex
            self._dispatch(Insert(build_pending_attachment(attachment_id, file)))
            self._sources[attachment_id] = file
            jobs.append(IntakeJob(attachment_id, file))

        for rejection in report.rejected:
            await self.event_manager.emit(FileRejectedEvent(rejection.file_name, rejection.reason, rejection.message))

        results: list[Attachment | None] = []
        if jobs:
            self._active_batches += 1
            try:
                results = await self.scheduler.run(jobs, self._run_job, self._fail)
            finally:
                self._active_batches -= 1

        settled = [attachment for attachment in results if attachment is not None]
        await self._emit_summary(settled, rejected=len(report.rejected))
        return settled

    async def remove(self, attachment_id: str) -> bool:
        """Drops a record and its handle. Safe while the file is still being processed."""
        removed = self._dispatch(Remove(attachment_id))
        if removed is None:
            return False
        await self.event_manager.emit(AttachmentRemovedEvent(removed.id, removed.name))
        return True

    async def clear(self) -> int:
        count = len(self._attachments)
        self._dispatch(Clear())
        await self.event_manager.emit(AttachmentsClearedEvent(count))
        return count

    async def retry(self, attachment_id: str) -> Attachment | None:
        """Re-runs a failed file from its retained source bytes."""
        current = self._attachments.get(attachment_id)
        if current is None:
            raise CannotRetryError(f"Файл {attachment_id} не найден")
        if current.status != "error":
            raise CannotRetryError(f"Повтор возможен только для файлов с ошибкой, текущий статус: {current.status}")
        source = self._sources.get(attachment_id)
        if source is None:
            raise CannotRetryError(f"Исходные данные файла {current.name} не сохранены, повтор невозможен")

        log(f"🔁 Повторная обработка {current.name}...", indent=1)
        return await self._run_job(IntakeJob(attachment_id, source))

    def report_progress(self, attachment_id: str, value: int) -> Attachment | None:
        """Progress hook for an external uploader, mapped onto the uploader's share of the scale."""
        start = 100 - self.config.upload_progress_share
        scaled = start + (100 - start) * clamp_progress(value) // 100
        return self._dispatch(ReportProgress(attachment_id, scaled))

    def close(self) -> None:
        """Releases every handle owned by the store."""
        if self._closed:
            return
        self._dispatch(Clear())
        self.registry.revoke_all()
        self._closed = True

    async def __aenter__(self) -> AttachmentStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # --- internals ---

    async def _run_job(self, job: IntakeJob) -> Attachment | None:
        if self._dispatch(StartProcessing(job.attachment_id)) is None:
            # Removed before its turn came
            return None

        def _report(value: int) -> None:
            self._dispatch(ReportProgress(job.attachment_id, value))

        on_progress = scale_progress(_report, 0, 100 - self.config.upload_progress_share)

        try:
            attachment = await self.processor.process(job.attachment_id, job.file, on_progress)
        except IntakeError as e:
            return await self._fail(job, str(e))
        except Exception as e:
            return await self._fail(job, f"Ошибка обработки: {e}")

        result = self._dispatch(Complete(attachment))
        if result is not None and result.compression_applied and result.saved_bytes > NOTABLE_SAVINGS_BYTES:
            await self.event_manager.emit(
                CompressionAppliedEvent(
                    result.name,
                    classify(result.original_type),
                    result.saved_bytes,
                    percent(result.saved_bytes, result.original_size),
                )
            )
        return result

    async def _fail(self, job: IntakeJob, error: str) -> Attachment | None:
        result = self._dispatch(Fail(job.attachment_id, error))
        if result is not None:
            await self.event_manager.emit(AttachmentFailedEvent(result.id, result.name, error))
        return result

    async def _emit_summary(self, settled: list[Attachment], rejected: int) -> None:
        stats = compute_statistics(settled)
        ready_saved = sum(a.saved_bytes for a in settled if a.status == "ready")
        await self.event_manager.emit(
            BatchSummaryEvent(
                ready=stats.ready_count,
                failed=stats.error_count,
                rejected=rejected,
                saved_bytes=ready_saved,
                statistics=stats.model_dump(),
            )
        )
