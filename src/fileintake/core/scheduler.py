import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from ..models import Attachment, IncomingFile
from ..utils.log import log
from .event_system import BatchGroupCompleteEvent, BatchGroupStartEvent, EventManager


@dataclass(frozen=True)
class IntakeJob:
    attachment_id: str
    file: IncomingFile


JobRunner = Callable[[IntakeJob], Awaitable[Attachment | None]]
FailureHandler = Callable[[IntakeJob, str], Awaitable[Attachment | None]]


def partition(jobs: Sequence[IntakeJob], size: int) -> list[list[IntakeJob]]:
    return [list(jobs[i : i + size]) for i in range(0, len(jobs), size)]


class BatchScheduler:
    """
    Runs jobs in concurrency-bounded groups, one group after another,
    with a fixed cooldown between groups. Results keep the submission order.
    """

    def __init__(self, event_manager: EventManager, concurrency: int = 3, group_delay_seconds: float = 0.1) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.event_manager = event_manager
        self.concurrency = concurrency
        self.group_delay_seconds = group_delay_seconds

    async def run(
        self, jobs: Sequence[IntakeJob], runner: JobRunner, on_failure: FailureHandler
    ) -> list[Attachment | None]:
        groups = partition(jobs, self.concurrency)
        total = len(groups)
        results: list[Attachment | None] = [None] * len(jobs)
        settled = [False] * len(jobs)

        log(f"📦 Файлов к обработке: {len(jobs)}, групп: {total}", indent=1)

        for index, group in enumerate(groups):
            offset = index * self.concurrency
            await self.event_manager.emit(BatchGroupStartEvent(index + 1, total, len(group)))

            try:
                outcomes = await self._run_group(group, runner)
                for position, (job, outcome) in enumerate(zip(group, outcomes, strict=True)):
                    if isinstance(outcome, BaseException):
                        if not isinstance(outcome, Exception):
                            raise outcome
                        outcome = await on_failure(job, f"Ошибка обработки: {outcome}")
                    results[offset + position] = outcome
                    settled[offset + position] = True
            except Exception as e:
                log(f"❌ Ошибка планировщика в группе {index + 1}/{total}: {e}", indent=1, err=True)
                for position, job in enumerate(group):
                    if not settled[offset + position]:
                        results[offset + position] = await on_failure(job, f"Ошибка планировщика: {e}")
                        settled[offset + position] = True

            await self.event_manager.emit(BatchGroupCompleteEvent(index + 1, total, len(group)))

            if index < total - 1 and self.group_delay_seconds > 0:
                await asyncio.sleep(self.group_delay_seconds)

        return results

    async def _run_group(
        self, group: Sequence[IntakeJob], runner: JobRunner
    ) -> list[Attachment | None | BaseException]:
        return await asyncio.gather(*(runner(job) for job in group), return_exceptions=True)
