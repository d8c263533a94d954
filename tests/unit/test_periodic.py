"""Unit tests for background periodic tasks."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from team_workflow_orchestrator.core.errors import WorkflowResumeError
from team_workflow_orchestrator.scheduling.periodic import (
    CleanupSweeper,
    PeriodicTask,
    RecordingAvailabilityWatcher,
)


@pytest.mark.asyncio
async def test_periodic_task_stops_when_callback_succeeds() -> None:
    results = iter([False, None, True, False])
    callback = AsyncMock(side_effect=lambda: next(results))

    task = PeriodicTask("tick", 0, callback)
    task.start()
    await task.wait()

    assert task.attempts == 3
    assert task.succeeded is True
    assert task.running is False


@pytest.mark.asyncio
async def test_periodic_task_gives_up_after_max_attempts() -> None:
    callback = AsyncMock(return_value=False)

    task = PeriodicTask("tick", 0, callback, max_attempts=4)
    task.start()
    await task.wait()

    assert callback.await_count == 4
    assert task.succeeded is False


@pytest.mark.asyncio
async def test_periodic_task_survives_callback_errors() -> None:
    callback = AsyncMock(side_effect=[RuntimeError("flaky"), True])

    task = PeriodicTask("tick", 0, callback, run_immediately=True)
    task.start()
    await task.wait()

    assert task.attempts == 2
    assert task.succeeded is True


@pytest.mark.asyncio
async def test_periodic_task_stop_cancels_sleeping_loop() -> None:
    callback = AsyncMock(return_value=False)
    task = PeriodicTask("slow", 3600, callback)

    task.start()
    assert task.running is True
    with pytest.raises(RuntimeError):
        task.start()

    await task.stop()
    assert task.running is False
    callback.assert_not_awaited()


def test_periodic_task_rejects_bad_arguments() -> None:
    with pytest.raises(ValueError):
        PeriodicTask("bad", -1, AsyncMock())
    with pytest.raises(ValueError):
        PeriodicTask("bad", 1, AsyncMock(), max_attempts=0)


@pytest.mark.asyncio
async def test_cleanup_sweeper_calls_sweep_with_ttl() -> None:
    orchestrator = Mock()
    orchestrator.sweep_completed.return_value = ["master-1"]
    sweeper = CleanupSweeper(orchestrator, ttl=timedelta(hours=2), interval_seconds=60)

    assert await sweeper.sweep_once() is False
    orchestrator.sweep_completed.assert_called_once_with(timedelta(hours=2))


@pytest.mark.asyncio
async def test_recording_watcher_resumes_with_transcript() -> None:
    orchestrator = Mock()
    orchestrator.resume = AsyncMock()
    lookup = AsyncMock(side_effect=[None, None, "Alice: hello"])
    watcher = RecordingAvailabilityWatcher(orchestrator, interval_seconds=0, max_attempts=12)

    task = watcher.watch("master-1", lookup)
    await task.wait()

    assert lookup.await_count == 3
    orchestrator.resume.assert_awaited_once_with("master-1", {"transcript": "Alice: hello"})
    assert watcher.is_watching("master-1") is False


@pytest.mark.asyncio
async def test_recording_watcher_gives_up_after_max_attempts() -> None:
    orchestrator = Mock()
    orchestrator.resume = AsyncMock()
    lookup = AsyncMock(return_value=None)
    watcher = RecordingAvailabilityWatcher(orchestrator, interval_seconds=0, max_attempts=3)

    await watcher.watch("master-1", lookup).wait()

    assert lookup.await_count == 3
    orchestrator.resume.assert_not_awaited()


@pytest.mark.asyncio
async def test_recording_watcher_stops_when_session_cannot_resume() -> None:
    orchestrator = Mock()
    orchestrator.resume = AsyncMock(side_effect=WorkflowResumeError("completed"))
    lookup = AsyncMock(return_value={"transcript": "x", "recording": {"id": "r"}})
    watcher = RecordingAvailabilityWatcher(orchestrator, interval_seconds=0, max_attempts=5)

    task = watcher.watch("master-1", lookup)
    await task.wait()

    assert task.attempts == 1
    assert task.succeeded is True


@pytest.mark.asyncio
async def test_recording_watcher_unwatch_and_stop_all() -> None:
    orchestrator = Mock()
    lookup = AsyncMock(return_value=None)
    watcher = RecordingAvailabilityWatcher(orchestrator, interval_seconds=3600)

    first = watcher.watch("master-1", lookup)
    assert watcher.watch("master-1", lookup) is first
    watcher.watch("master-2", lookup)
    await asyncio.sleep(0)

    assert await watcher.unwatch("master-1") is True
    assert await watcher.unwatch("master-1") is False
    await watcher.stop_all()

    assert watcher.is_watching("master-2") is False


@pytest.mark.asyncio
async def test_recording_watcher_forgets_finished_watches() -> None:
    orchestrator = Mock()
    orchestrator.resume = AsyncMock()
    watcher = RecordingAvailabilityWatcher(orchestrator, interval_seconds=0, max_attempts=1)

    gave_up = [watcher.watch(f"master-{i}", AsyncMock(return_value=None)) for i in range(5)]
    found = watcher.watch("master-found", AsyncMock(return_value="Alice: hi"))
    for task in [*gave_up, found]:
        await task.wait()
    await asyncio.sleep(0)

    assert watcher.watched_sessions() == []
    orchestrator.resume.assert_awaited_once_with("master-found", {"transcript": "Alice: hi"})
