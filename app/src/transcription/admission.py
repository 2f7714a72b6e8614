"""
Admission control for recognizer invocations.

Bounds how many recognizer subprocesses run at once and queues the
overflow in strict arrival order.  State lives on the event loop: every
mutation below happens between ``await`` points, so no lock is needed as
long as all callers share the loop the controller is used from.

A released slot is handed directly to the head waiter (``running`` never
dips below the limit while anyone is queued), so a late arrival can never
overtake a queued request.
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Dict, Set, Tuple

from src.transcription.exceptions import QueueFull

logger = logging.getLogger(__name__)

_Waiter = Tuple[str, "asyncio.Future[None]"]


class AdmissionController:
    """Counter plus FIFO wait list guarding the recognizer."""

    def __init__(self, max_concurrent: int, max_queue_depth: int = 0) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be a positive integer")
        if max_queue_depth < 0:
            raise ValueError("max_queue_depth must be >= 0")
        self.max_concurrent = max_concurrent
        self.max_queue_depth = max_queue_depth
        self._running: Set[str] = set()
        self._waiters: Deque[_Waiter] = deque()

    # ── Introspection ────────────────────────────────────────────────────

    @property
    def running(self) -> int:
        return len(self._running)

    @property
    def queued(self) -> int:
        return sum(1 for _, fut in self._waiters if not fut.done())

    def is_running(self, job_id: str) -> bool:
        return job_id in self._running

    def snapshot(self) -> Dict[str, int]:
        return {
            "active": self.running,
            "queued": self.queued,
            "maxConcurrent": self.max_concurrent,
        }

    # ── Acquire / release ────────────────────────────────────────────────

    async def acquire(self, job_id: str) -> None:
        """Wait until ``job_id`` holds a slot.

        Raises ``QueueFull`` without enqueueing when the wait list is at
        its depth limit.  If the caller is cancelled while waiting it is
        dropped from the wait list; if the cancellation races with a
        handoff, the slot is passed on to the next waiter.
        """
        if job_id in self._running or any(jid == job_id for jid, _ in self._waiters):
            raise ValueError(f"Job {job_id} already holds or awaits a slot")

        # A free slot implies nobody live is waiting: release() hands off.
        if len(self._running) < self.max_concurrent:
            self._running.add(job_id)
            logger.debug(
                "Job %s admitted immediately (%d/%d running)",
                job_id, len(self._running), self.max_concurrent,
            )
            return

        if self.max_queue_depth and self.queued >= self.max_queue_depth:
            logger.warning(
                "Rejecting job %s: wait list full (%d queued)",
                job_id, self.queued,
            )
            raise QueueFull(
                "Transcription queue is full, please try again later."
            )

        future: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
        waiter = (job_id, future)
        self._waiters.append(waiter)
        logger.info(
            "Queueing transcription job %s - %d active jobs, %d waiting",
            job_id, len(self._running), self.queued,
        )

        try:
            await future
        except asyncio.CancelledError:
            if future.done() and not future.cancelled():
                # Slot was granted before the cancellation landed.
                logger.info("Job %s cancelled right after admission", job_id)
                self.release(job_id)
            else:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)
                logger.info("Job %s cancelled while queued", job_id)
            raise

        logger.debug("Job %s admitted from queue", job_id)

    def release(self, job_id: str) -> None:
        """Return ``job_id``'s slot and hand it to the head waiter, if any."""
        if job_id not in self._running:
            raise ValueError(f"Job {job_id} does not hold a slot")
        self._running.discard(job_id)

        while self._waiters:
            next_id, future = self._waiters.popleft()
            if future.done():
                continue  # cancelled while waiting
            self._running.add(next_id)
            future.set_result(None)
            logger.debug("Slot of job %s handed to job %s", job_id, next_id)
            break

        logger.debug(
            "Job %s released its slot (%d/%d running, %d queued)",
            job_id, len(self._running), self.max_concurrent, self.queued,
        )

    @asynccontextmanager
    async def slot(self, job_id: str) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block; always released."""
        await self.acquire(job_id)
        try:
            yield
        finally:
            self.release(job_id)
