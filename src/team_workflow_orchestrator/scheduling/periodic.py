"""Background periodic tasks.

Each task runs on its own asyncio timer and is not coordinated with the
foreground path beyond sharing the orchestrator's session maps. A task stops
when its callback returns True, after ``max_attempts`` runs, or on ``stop()``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import timedelta
from typing import Any

from team_workflow_orchestrator.core.errors import SessionNotFoundError, WorkflowResumeError
from team_workflow_orchestrator.master.orchestrator import MasterOrchestrator

logger = logging.getLogger(__name__)

TaskCallback = Callable[[], Awaitable[bool | None]]
RecordingLookup = Callable[[str], Awaitable[str | Mapping[str, Any] | None]]


class PeriodicTask:
    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: TaskCallback,
        *,
        max_attempts: int | None = None,
        run_immediately: bool = False,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.name = name
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.run_immediately = run_immediately
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self.attempts = 0
        self.succeeded = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        if self.running:
            raise RuntimeError(f"Periodic task {self.name!r} is already running")
        self._task = asyncio.create_task(self._run(), name=self.name)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        logger.debug(f"Starting periodic task {self.name}")
        if not self.run_immediately:
            await asyncio.sleep(self.interval_seconds)

        while True:
            self.attempts += 1
            try:
                done = await self._callback()
            except Exception:
                logger.exception(
                    "Periodic task callback failed",
                    extra={"task": self.name, "attempt": self.attempts},
                )
                done = False

            if done:
                self.succeeded = True
                logger.info(
                    f"Periodic task {self.name} finished after {self.attempts} attempt(s)"
                )
                return
            if self.max_attempts is not None and self.attempts >= self.max_attempts:
                logger.warning(
                    f"Periodic task {self.name} gave up after {self.attempts} attempt(s)"
                )
                return

            await asyncio.sleep(self.interval_seconds)


class CleanupSweeper:
    """Evict finished master sessions older than ``ttl`` on a fixed interval."""

    def __init__(
        self,
        orchestrator: MasterOrchestrator,
        ttl: timedelta = timedelta(hours=24),
        interval_seconds: float = 3600.0,
    ) -> None:
        self.orchestrator = orchestrator
        self.ttl = ttl
        self.task = PeriodicTask("master-session-cleanup", interval_seconds, self.sweep_once)

    async def sweep_once(self) -> bool:
        evicted = self.orchestrator.sweep_completed(self.ttl)
        if evicted:
            logger.info(f"Cleaned up {len(evicted)} completed master session(s)")
        return False

    def start(self) -> asyncio.Task[None]:
        return self.task.start()

    async def stop(self) -> None:
        await self.task.stop()


class RecordingAvailabilityWatcher:
    """Poll for a meeting transcript and resume the master session once it exists.

    ``lookup(master_session_id)`` returns the transcript text (or a mapping of
    resume data) when available and None otherwise.
    """

    def __init__(
        self,
        orchestrator: MasterOrchestrator,
        interval_seconds: float = 300.0,
        max_attempts: int = 12,
    ) -> None:
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._watches: dict[str, PeriodicTask] = {}

    def watch(self, master_session_id: str, lookup: RecordingLookup) -> PeriodicTask:
        existing = self._watches.get(master_session_id)
        if existing is not None and existing.running:
            return existing

        async def check() -> bool:
            found = await lookup(master_session_id)
            if not found:
                logger.debug(
                    "Recording not yet available",
                    extra={"master_session_id": master_session_id},
                )
                return False

            data = {"transcript": found} if isinstance(found, str) else dict(found)
            try:
                await self.orchestrator.resume(master_session_id, data)
            except (SessionNotFoundError, WorkflowResumeError) as e:
                logger.warning(
                    f"Stopped watching for recording: {e}",
                    extra={"master_session_id": master_session_id},
                )
            return True

        task = PeriodicTask(
            f"recording-check-{master_session_id}",
            self.interval_seconds,
            check,
            max_attempts=self.max_attempts,
        )
        self._watches[master_session_id] = task
        task.start().add_done_callback(lambda _: self._forget(master_session_id, task))
        return task

    def _forget(self, master_session_id: str, task: PeriodicTask) -> None:
        if self._watches.get(master_session_id) is task:
            del self._watches[master_session_id]

    def watched_sessions(self) -> list[str]:
        return list(self._watches)

    def is_watching(self, master_session_id: str) -> bool:
        task = self._watches.get(master_session_id)
        return task is not None and task.running

    async def unwatch(self, master_session_id: str) -> bool:
        task = self._watches.pop(master_session_id, None)
        if task is None:
            return False
        await task.stop()
        return True

    async def stop_all(self) -> None:
        for master_session_id in list(self._watches):
            await self.unwatch(master_session_id)
