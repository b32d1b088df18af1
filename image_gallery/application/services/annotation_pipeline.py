"""
Annotation Pipeline

Composition root of the asynchronous annotation pipeline. One instance owns
one queue, one orchestrator and one poller around an injected client, state
store and image storage. Instances share no hidden state.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from image_gallery.application.pipeline_config import PipelineConfig
from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.application.queue.sequential_job_queue import SequentialJobQueue
from image_gallery.application.services.annotation_orchestrator import (
    AnnotationOrchestrator,
)
from image_gallery.application.services.reconciliation_poller import (
    ReconciliationPoller,
    ReconciliationReport,
)
from image_gallery.domain.annotation.entities.annotation_record import utc_now
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    ProcessingStateStoreProtocol,
)
from image_gallery.domain.annotation.services.annotation_client import (
    AnnotationClientProtocol,
)


logger = logging.getLogger(__name__)


class AnnotationPipeline:
    """
    Wires queue, orchestrator and poller together and manages their lifecycle.

    Examples:
        >>> pipeline = AnnotationPipeline(client, store, storage, PipelineConfig.default())
        >>> pipeline.start()
        >>> pipeline.submit_for_annotation(image.id, image.owner_id, url)
        True
        >>> await pipeline.stop()
    """

    def __init__(
        self,
        client: AnnotationClientProtocol,
        store: ProcessingStateStoreProtocol,
        storage: ImageStorageProtocol,
        config: Optional[PipelineConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or PipelineConfig.default()
        self.client = client
        self.store = store
        self.storage = storage
        self.queue = SequentialJobQueue()
        self.orchestrator = AnnotationOrchestrator(
            self.queue,
            client,
            store,
            job_deadline_seconds=self.config.job_deadline_seconds,
            job_retry_limit=self.config.job_retry_limit,
        )
        self.poller = ReconciliationPoller(
            store, storage, self.orchestrator, self.config, clock=clock
        )
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Open the queue and start the reconciliation timer."""
        if self._started:
            return
        self.client.start()
        self.queue.start()
        self.poller.start()
        self._started = True
        logger.info("Annotation pipeline started")

    async def stop(self) -> None:
        """
        Stop the pipeline: cancel the poller, abort any backoff wait and let
        the executing job finish. Queued jobs are dropped and stay pending.
        """
        if not self._started:
            return
        self._started = False
        await self.poller.stop()
        self.client.shutdown()
        await self.queue.stop()
        self.orchestrator.release_in_flight()
        logger.info("Annotation pipeline stopped")

    def submit_for_annotation(
        self, image_id: str, owner_id: str, image_reference: str
    ) -> bool:
        """Entry point of the upload path (returns False if already in flight)."""
        return self.orchestrator.submit(image_id, owner_id, image_reference)

    async def reanalyze(
        self, image_id: str, owner_id: str, image_reference: str
    ) -> bool:
        return await self.orchestrator.reanalyze(image_id, owner_id, image_reference)

    async def reconcile_now(self) -> ReconciliationReport:
        """Run one reconciliation tick immediately (e.g. at startup)."""
        return await self.poller.tick()

    @property
    def queue_depth(self) -> int:
        return self.queue.pending_count
