import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.fileintake.core.event_system import BATCH_GROUP_COMPLETE, BATCH_GROUP_START, EventManager
from src.fileintake.core.scheduler import BatchScheduler, IntakeJob, partition
from src.fileintake.models import Attachment, MemoryFile
from src.fileintake.processing.builder import build_pending_attachment


def _jobs(count: int) -> list[IntakeJob]:
    return [
        IntakeJob(f"id-{i}", MemoryFile.from_bytes(f"file-{i}.pdf", b"x" * (i + 1), type="application/pdf"))
        for i in range(count)
    ]


async def _echo(job: IntakeJob) -> Attachment:
    return build_pending_attachment(job.attachment_id, job.file)


@pytest.fixture
def event_manager() -> EventManager:
    return EventManager()


def test_partition():
    jobs = _jobs(5)

    groups = partition(jobs, 2)

    assert [len(g) for g in groups] == [2, 2, 1]
    assert groups[2][0] is jobs[4]


def test_concurrency_must_be_positive(event_manager: EventManager):
    with pytest.raises(ValueError):
        BatchScheduler(event_manager, concurrency=0)


@pytest.mark.asyncio
async def test_results_keep_submission_order(event_manager: EventManager):
    """Test that results follow submission order even when later jobs finish first."""
    # Arrange
    scheduler = BatchScheduler(event_manager, concurrency=2, group_delay_seconds=0)
    delays = {"id-0": 0.03, "id-1": 0.0, "id-2": 0.02, "id-3": 0.0, "id-4": 0.01}

    async def runner(job: IntakeJob) -> Attachment:
        await asyncio.sleep(delays[job.attachment_id])
        return await _echo(job)

    # Act
    results = await scheduler.run(_jobs(5), runner, AsyncMock())

    # Assert
    assert [r.id for r in results] == ["id-0", "id-1", "id-2", "id-3", "id-4"]


@pytest.mark.asyncio
async def test_groups_never_exceed_concurrency(event_manager: EventManager):
    scheduler = BatchScheduler(event_manager, concurrency=2, group_delay_seconds=0)
    running = 0
    peak = 0

    async def runner(job: IntakeJob) -> Attachment:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return await _echo(job)

    await scheduler.run(_jobs(5), runner, AsyncMock())

    assert peak == 2


@pytest.mark.asyncio
async def test_group_events(event_manager: EventManager):
    """Test that every group is bracketed by start and complete events."""
    # Arrange
    seen: list[tuple[str, int, int]] = []
    handler = MagicMock(side_effect=lambda e: seen.append((e.name, e.data["group_index"], e.data["group_size"])))
    event_manager.subscribe(BATCH_GROUP_START, handler)
    event_manager.subscribe(BATCH_GROUP_COMPLETE, handler)
    scheduler = BatchScheduler(event_manager, concurrency=2, group_delay_seconds=0)

    # Act
    await scheduler.run(_jobs(3), _echo, AsyncMock())

    # Assert
    assert seen == [
        (BATCH_GROUP_START, 1, 2),
        (BATCH_GROUP_COMPLETE, 1, 2),
        (BATCH_GROUP_START, 2, 1),
        (BATCH_GROUP_COMPLETE, 2, 1),
    ]


@pytest.mark.asyncio
async def test_failed_job_is_isolated(event_manager: EventManager):
    """Test that one raising job is handed to on_failure while its siblings complete."""
    # Arrange
    scheduler = BatchScheduler(event_manager, concurrency=3, group_delay_seconds=0)
    failed = build_pending_attachment("id-1", _jobs(2)[1].file).model_copy(update={"status": "error"})
    on_failure = AsyncMock(return_value=failed)

    async def runner(job: IntakeJob) -> Attachment:
        if job.attachment_id == "id-1":
            raise RuntimeError("decoder crashed")
        return await _echo(job)

    # Act
    results = await scheduler.run(_jobs(3), runner, on_failure)

    # Assert
    assert [r.status for r in results] == ["pending", "error", "pending"]
    on_failure.assert_awaited_once()
    job, message = on_failure.await_args.args
    assert job.attachment_id == "id-1"
    assert "decoder crashed" in message


@pytest.mark.asyncio
async def test_group_level_failure_marks_every_member(event_manager: EventManager):
    """Test that a failure of the whole group fails each unsettled member and moves on."""
    scheduler = BatchScheduler(event_manager, concurrency=2, group_delay_seconds=0)
    on_failure = AsyncMock(return_value=None)
    original = scheduler._run_group
    calls = 0

    async def flaky_group(group, runner):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("pool exhausted")
        return await original(group, runner)

    with patch.object(scheduler, "_run_group", side_effect=flaky_group):
        results = await scheduler.run(_jobs(3), _echo, on_failure)

    assert on_failure.await_count == 2
    assert "Ошибка планировщика: pool exhausted" in on_failure.await_args_list[0].args[1]
    assert results[0] is None and results[1] is None
    assert results[2].id == "id-2"


@pytest.mark.asyncio
async def test_cooldown_between_groups_only(event_manager: EventManager):
    """Test that the scheduler sleeps between groups but not after the last one."""
    scheduler = BatchScheduler(event_manager, concurrency=2, group_delay_seconds=0.1)

    with patch("src.fileintake.core.scheduler.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await scheduler.run(_jobs(5), _echo, AsyncMock())

    assert mock_sleep.await_count == 2
    mock_sleep.assert_awaited_with(0.1)
