"""Serialized write queue for one provider store.

Every mutation of a store is a read-modify-write of the whole record, so two
of them must never overlap or the later one would persist a state computed
from a stale read. Instead of a lock, one coroutine at a time owns the
queue (the in-flight flag) and drains it:

1. submit() appends the job to a FIFO deque
2. if nobody is flushing, the caller becomes the flusher and pops jobs
   one by one (popleft, then execute) until the deque is empty, including
   jobs that arrive while it is draining
3. if a flush is already running, submit() returns right away, the job
   runs later in arrival order

A failing job is logged and counted, the drain goes on with the next one. If
the flushing caller is cancelled, the rest of the queue is drained by a
background task.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

WriteJob = Callable[[], Awaitable[None]]


class SerializedWriteQueue:
    """FIFO of write jobs, executed one at a time.

    Single event loop only; the flag is checked and set without an await in
    between, which is what makes it a mutex under cooperative scheduling.

    Example:
        queue = SerializedWriteQueue("default")
        await queue.submit(write_job)   # runs now, or later if a flush is in progress
        await queue.wait_idle()         # every submitted job has run
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._pending: deque[WriteJob] = deque()
        self._writing = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._drain_task: asyncio.Task[None] | None = None

        # Metrics for monitoring
        self._jobs_submitted = 0
        self._jobs_completed = 0
        self._jobs_failed = 0
        self._drain_count = 0

    @property
    def is_writing(self) -> bool:
        """True while a flush owns the queue."""
        return self._writing

    async def submit(self, job: WriteJob) -> None:
        """Queue a job and drain the queue unless a flush is already running."""
        self._pending.append(job)
        self._jobs_submitted += 1

        if self._writing:
            logger.debug(
                "Write queue '%s' busy, job queued (%d pending)",
                self._name,
                len(self._pending),
            )
            return

        self._writing = True
        self._idle.clear()
        await self._drain()

    # Hey future me - whoever holds _writing MUST empty the deque before letting go.
    # If the flushing coroutine gets cancelled mid-drain (shutdown, timeout in the
    # caller), the remaining jobs would sit there with nobody flushing them and
    # wait_idle() would lie. So the drain is handed to a background task instead,
    # and _writing / _idle stay untouched until that task finishes.
    async def _drain(self) -> None:
        try:
            while self._pending:
                next_job = self._pending.popleft()
                await self._execute(next_job)
            self._drain_count += 1
        finally:
            if self._pending:
                logger.warning(
                    "Write queue '%s' flush interrupted, %d writes handed to background drain",
                    self._name,
                    len(self._pending),
                )
                self._drain_task = asyncio.get_running_loop().create_task(self._drain())
            else:
                self._drain_task = None
                self._writing = False
                self._idle.set()

    async def _execute(self, job: WriteJob) -> None:
        try:
            await job()
        except Exception as e:
            self._jobs_failed += 1
            logger.error(
                "Write to '%s' failed, dropping it: %s",
                self._name,
                e,
                exc_info=True,
            )
        else:
            self._jobs_completed += 1

    async def wait_idle(self) -> None:
        """Wait until no flush is running and nothing is pending."""
        await self._idle.wait()

    def get_stats(self) -> dict[str, Any]:
        """Queue statistics for monitoring."""
        return {
            "name": self._name,
            "pending_writes": len(self._pending),
            "is_writing": self._writing,
            "jobs_submitted": self._jobs_submitted,
            "jobs_completed": self._jobs_completed,
            "jobs_failed": self._jobs_failed,
            "drain_count": self._drain_count,
            "background_drain": self._drain_task is not None,
        }
