"""
Sequential Job Queue

In-process FIFO executor running at most one annotation job at a time.

Responsibility:
    - Accept jobs without blocking the caller (enqueue is synchronous)
    - Execute jobs strictly in submission order, one at a time
    - Absorb handler failures so one bad job never halts the queue

Architecture Notes:
    - Part of Application Layer (in-process worker with concurrency=1)
    - Bound to the running asyncio event loop; one drain task per queue
    - Not durable: jobs dropped on stop() leave their records pending and
      are recovered by the ReconciliationPoller
"""

import asyncio
import logging
from collections import deque
from typing import Optional

from image_gallery.application.models import Job


logger = logging.getLogger(__name__)


class SequentialJobQueue:
    """
    FIFO queue with a single drain loop.

    A "draining" flag guarantees that only one drain task exists at a time,
    so no two handlers ever overlap.

    Examples:
        >>> queue = SequentialJobQueue()
        >>> queue.start()
        >>> queue.enqueue(job)
        True
        >>> await queue.join()
        >>> queue.processed_count
        1
    """

    def __init__(self, name: str = "annotation") -> None:
        self.name = name
        self._jobs: deque[Job] = deque()
        self._draining = False
        self._accepting = False
        self._drain_task: Optional[asyncio.Task] = None
        self._current: Optional[Job] = None
        self._processed_count = 0
        self._failed_count = 0
        self._dropped_count = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        """Jobs waiting in the queue (the executing job is not counted)."""
        return len(self._jobs)

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def is_accepting(self) -> bool:
        return self._accepting

    @property
    def current_job(self) -> Optional[Job]:
        return self._current

    @property
    def processed_count(self) -> int:
        """Jobs whose handler returned normally."""
        return self._processed_count

    @property
    def failed_count(self) -> int:
        """Jobs whose handler raised (absorbed by the queue)."""
        return self._failed_count

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the queue for new jobs."""
        self._accepting = True
        logger.info(f"Job queue '{self.name}' started")

    async def stop(self) -> int:
        """
        Close the queue.

        New jobs are rejected, the executing job is allowed to finish and
        the remaining queued jobs are dropped.

        Returns:
            Number of queued jobs dropped
        """
        self._accepting = False
        dropped = len(self._jobs)
        self._jobs.clear()
        self._dropped_count += dropped

        if dropped:
            logger.warning(
                f"Job queue '{self.name}' stopping: dropped {dropped} queued job(s), "
                f"records stay pending for reconciliation"
            )

        await self.join()
        logger.info(f"Job queue '{self.name}' stopped")
        return dropped

    async def join(self) -> None:
        """Wait until the queue is empty and no job is executing."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.wait({self._drain_task})

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def enqueue(self, job: Job) -> bool:
        """
        Append a job and schedule draining if the queue is idle.

        Never blocks and never raises on handler failure (handlers run later).
        Must be called from the event loop thread.

        Returns:
            True if the job was accepted, False if the queue is closed
        """
        if not self._accepting:
            logger.warning(
                f"Job queue '{self.name}' is closed, rejecting job for image {job.image_id}"
            )
            return False

        self._jobs.append(job)
        logger.debug(
            f"Enqueued job for image {job.image_id} (source={job.source.value}, "
            f"pending={len(self._jobs)})"
        )

        if not self._draining:
            self._draining = True
            self._drain_task = asyncio.create_task(
                self._drain(), name=f"{self.name}-queue-drain"
            )
        return True

    async def _drain(self) -> None:
        try:
            while self._jobs:
                job = self._jobs.popleft()
                self._current = job
                try:
                    await job.run()
                except Exception:
                    self._failed_count += 1
                    logger.exception(
                        f"Job for image {job.image_id} raised an unhandled error"
                    )
                else:
                    self._processed_count += 1
                finally:
                    self._current = None
        finally:
            self._draining = False
