"""
Reconciliation Poller

Periodic re-scan that finds annotation records nobody is working on and
resubmits them through the orchestrator.

Responsibility:
    - Find pending records older than the liveness window
    - Find processing records abandoned mid-job (crash, shutdown)
    - Find failed records whose failure was transient (retryable)
    - Mint a fresh temporary access URL and resubmit each of them
    - Never overlap with itself

Architecture Notes:
    - Part of Application Layer
    - Timer loop is a cancellable asyncio task; each tick runs as its own
      task so a slow tick never delays the timer
    - Clock is injectable for deterministic tests
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from image_gallery.application.models import JobSource
from image_gallery.application.pipeline_config import PipelineConfig
from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.application.services.annotation_orchestrator import (
    AnnotationOrchestrator,
)
from image_gallery.domain.annotation.entities.annotation_record import utc_now
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    ProcessingStateStoreProtocol,
    StuckAnnotation,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationReport:
    """
    Outcome of one poller tick.

    Attributes:
        scanned: Records selected for resubmission (in-flight ids excluded)
        submitted: Records enqueued through the orchestrator
        unresolved: Records whose access URL could not be minted (left untouched)
        skipped: True if the tick did nothing because another tick was scanning
    """

    scanned: int = 0
    submitted: int = 0
    unresolved: int = 0
    skipped: bool = False


class ReconciliationPoller:
    """
    idle -> scanning -> idle, every poll_interval_seconds.

    Examples:
        >>> poller = ReconciliationPoller(store, storage, orchestrator, config)
        >>> report = await poller.tick()
        >>> report.submitted
        2
    """

    def __init__(
        self,
        store: ProcessingStateStoreProtocol,
        storage: ImageStorageProtocol,
        orchestrator: AnnotationOrchestrator,
        config: Optional[PipelineConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.storage = storage
        self.orchestrator = orchestrator
        self.config = config or PipelineConfig.default()
        self._clock = clock
        self._scanning = False
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_tasks: set[asyncio.Task] = set()
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the timer loop (no-op if already running)."""
        if self.is_running:
            return
        self._stop_event = asyncio.Event()
        self._timer_task = asyncio.create_task(
            self._run_timer(), name="reconciliation-poller"
        )
        logger.info(
            f"Reconciliation poller started (interval={self.config.poll_interval_seconds}s, "
            f"batch={self.config.poll_batch_size})"
        )

    async def stop(self) -> None:
        """Cancel the timer and any tick still running."""
        self._stop_event.set()
        tasks = list(self._tick_tasks)
        if self._timer_task is not None:
            tasks.append(self._timer_task)

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._timer_task = None
        self._tick_tasks.clear()
        logger.info("Reconciliation poller stopped")

    async def _run_timer(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.poll_interval_seconds
                )
            except asyncio.TimeoutError:
                task = asyncio.create_task(self._safe_tick(), name="reconciliation-tick")
                self._tick_tasks.add(task)
                task.add_done_callback(self._tick_tasks.discard)

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            logger.exception("Reconciliation tick failed")

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def tick(self) -> ReconciliationReport:
        """
        Run one scan.

        Returns:
            ReconciliationReport (skipped=True if another tick is scanning)
        """
        if self._scanning:
            logger.debug("Reconciliation tick skipped, previous tick still scanning")
            return ReconciliationReport(skipped=True)

        self._scanning = True
        try:
            return await self._scan()
        finally:
            self._scanning = False

    async def _collect(self, now: datetime) -> list[StuckAnnotation]:
        """
        Pick up to poll_batch_size records nobody is working on.

        Sources in order: pending past the liveness window, processing past
        the stale window, failed-retryable past the liveness window. Each
        source is over-fetched by the in-flight count so records already
        queued never crowd out the ones that were lost.
        """
        batch_size = self.config.poll_batch_size
        fetch_size = batch_size + self.orchestrator.in_flight_count
        sources = (
            (self.store.list_stuck_pending, now - self.config.liveness_window),
            (self.store.list_stale_processing, now - self.config.processing_stale_after),
            (self.store.list_retryable_failed, now - self.config.liveness_window),
        )

        batch: list[StuckAnnotation] = []
        for list_records, older_than in sources:
            if len(batch) >= batch_size:
                break
            for record in await list_records(older_than, fetch_size):
                if self.orchestrator.is_in_flight(record.image_id):
                    continue
                batch.append(record)
                if len(batch) >= batch_size:
                    break
        return batch

    async def _scan(self) -> ReconciliationReport:
        stuck = await self._collect(self._clock())

        submitted = 0
        unresolved = 0
        for record in stuck:
            reference = await self._resolve_reference(record)
            if reference is None:
                unresolved += 1
                continue
            if self.orchestrator.submit(
                record.image_id,
                record.owner_id,
                reference,
                JobSource.RECONCILIATION,
            ):
                submitted += 1

        if stuck:
            logger.info(
                f"Reconciliation tick: scanned={len(stuck)} submitted={submitted} "
                f"unresolved={unresolved}"
            )
        return ReconciliationReport(
            scanned=len(stuck), submitted=submitted, unresolved=unresolved
        )

    async def _resolve_reference(self, record: StuckAnnotation) -> Optional[str]:
        try:
            return await self.storage.resolve_temporary_access(
                record.image_location, self.config.signed_url_ttl_seconds
            )
        except Exception as e:
            logger.warning(
                f"Could not resolve access URL for image {record.image_id} "
                f"({record.status.value}), leaving it for the next tick: {e}"
            )
            return None
