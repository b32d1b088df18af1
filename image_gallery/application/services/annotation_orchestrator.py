"""
Annotation Orchestrator

Turns "annotate this image" into a Job on the SequentialJobQueue and runs
the job: processing -> AI call -> done | failed.

Responsibility:
    - Build and enqueue jobs (upload, reconciliation, re-analysis)
    - Ignore submissions for an image already queued or executing
    - Drive the AnnotationRecord status through one job
    - Absorb job failures into "failed" records (never surfaced to uploader)

Architecture Notes:
    - Part of Application Layer (orchestration, no business rules)
    - Single write path for annotation state: the record is created pending
      at upload and only updated here afterwards
    - Stages logged with timestamp and process memory (psutil)
"""

import asyncio
import logging
import os
from datetime import datetime

import psutil

from image_gallery.application.models import Job, JobSource
from image_gallery.application.pipeline_config import (
    DEFAULT_JOB_DEADLINE_SECONDS,
    DEFAULT_JOB_RETRY_LIMIT,
)
from image_gallery.application.queue.sequential_job_queue import SequentialJobQueue
from image_gallery.domain.annotation.entities.annotation_record import AnnotationStatus
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    ProcessingStateStoreProtocol,
)
from image_gallery.domain.annotation.services.annotation_client import (
    AnnotationClientProtocol,
)
from image_gallery.domain.annotation.value_objects.annotation import Annotation
from image_gallery.domain.shared.exceptions import (
    AnnotationRecordNotFoundError,
    AnnotationTimeoutError,
    InvalidInputError,
    InvalidStatusTransitionError,
    PipelineShutdownError,
    TransientServiceError,
)


logger = logging.getLogger(__name__)


class AnnotationOrchestrator:
    """
    Submits annotation jobs and executes them against the state store.

    Job handler flow:
        1. set_status(processing) when the handler actually starts
        2. client.analyze(reference) bounded by job_deadline_seconds
        3. success -> set_result(annotation, done)
        4. any Exception -> set_failed (PipelineShutdownError excepted:
           the record stays processing for the stale-processing pass)

    Transient failures (network, 5xx, job deadline) are stored retryable
    until the record has failed job_retry_limit times; the poller submits
    retryable records again.

    Examples:
        >>> orchestrator = AnnotationOrchestrator(queue, client, store)
        >>> orchestrator.submit("img-1", "user-1", "https://...")
        True
        >>> orchestrator.submit("img-1", "user-1", "https://...")  # already in flight
        False
    """

    def __init__(
        self,
        queue: SequentialJobQueue,
        client: AnnotationClientProtocol,
        store: ProcessingStateStoreProtocol,
        job_deadline_seconds: float = DEFAULT_JOB_DEADLINE_SECONDS,
        job_retry_limit: int = DEFAULT_JOB_RETRY_LIMIT,
    ) -> None:
        self.queue = queue
        self.client = client
        self.store = store
        self.job_deadline_seconds = job_deadline_seconds
        self.job_retry_limit = job_retry_limit
        self._in_flight: set[str] = set()
        self._process = psutil.Process(os.getpid())

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def is_in_flight(self, image_id: str) -> bool:
        return image_id in self._in_flight

    def release_in_flight(self) -> int:
        """
        Forget every in-flight image id.

        Called once the queue is stopped and idle: jobs it dropped never ran,
        so their images must become submittable again.
        """
        released = len(self._in_flight)
        self._in_flight.clear()
        return released

    def _log_stage(self, stage: str, message: str) -> None:
        memory_mb = self._process.memory_info().rss / 1024 / 1024
        timestamp = datetime.now().isoformat()
        logger.info(f"{timestamp} | {memory_mb:.1f}MB | {stage} | {message}")

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        image_id: str,
        owner_id: str,
        image_reference: str,
        source: JobSource = JobSource.UPLOAD,
    ) -> bool:
        """
        Enqueue an annotation job for one image.

        Args:
            image_id: Image to annotate
            owner_id: Owner of the image
            image_reference: URL the AI service can fetch (temporary access URL)
            source: Who submitted the job

        Returns:
            True if a job was enqueued, False if the image is already in
            flight or the queue is closed

        Raises:
            InvalidInputError: If image_id or owner_id is empty
        """
        if not image_id:
            raise InvalidInputError("image_id cannot be empty", field_name="image_id")
        if not owner_id:
            raise InvalidInputError("owner_id cannot be empty", field_name="owner_id")

        if image_id in self._in_flight:
            logger.info(
                f"Image {image_id} already queued or executing, "
                f"ignoring {source.value} submission"
            )
            return False

        job = Job(
            image_id=image_id,
            owner_id=owner_id,
            image_reference=image_reference,
            handler=self._run_job,
            source=source,
        )
        if not self.queue.enqueue(job):
            return False

        self._in_flight.add(image_id)
        self._log_stage(
            "SUBMITTED",
            f"Image {image_id} queued (source={source.value}, "
            f"pending={self.queue.pending_count})",
        )
        return True

    async def reanalyze(
        self, image_id: str, owner_id: str, image_reference: str
    ) -> bool:
        """
        Explicit re-analysis: move a done/failed record back to pending and
        submit it again.

        Raises:
            AnnotationRecordNotFoundError: If the image has no record
            InvalidStatusTransitionError: If the record is currently processing
        """
        record = await self.store.get(image_id)
        if record is None:
            raise AnnotationRecordNotFoundError(image_id)
        if record.status == AnnotationStatus.PROCESSING or self.is_in_flight(image_id):
            raise InvalidStatusTransitionError(
                record.status.value, AnnotationStatus.PENDING.value
            )

        await self.store.set_status(image_id, AnnotationStatus.PENDING)
        logger.info(f"Image {image_id} reset to pending for re-analysis")
        return self.submit(image_id, owner_id, image_reference, JobSource.REANALYSIS)

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def _run_job(self, job: Job) -> None:
        try:
            await self._execute(job)
        finally:
            self._in_flight.discard(job.image_id)

    async def _execute(self, job: Job) -> None:
        image_id = job.image_id

        try:
            await self.store.set_status(image_id, AnnotationStatus.PROCESSING)
        except AnnotationRecordNotFoundError:
            logger.warning(f"Image {image_id} has no annotation record, skipping job")
            return
        except InvalidStatusTransitionError as e:
            logger.warning(f"Skipping job for image {image_id}: {e.message}")
            return

        self._log_stage(
            "PROCESSING", f"Image {image_id} annotation started (source={job.source.value})"
        )

        try:
            annotation = await self._analyze(job.image_reference)
        except PipelineShutdownError:
            self._log_stage(
                "ABORTED",
                f"Image {image_id} left processing, pipeline is shutting down",
            )
            return
        except Exception as exc:
            self._log_stage("FAILED", f"Image {image_id} annotation failed: {exc}")
            await self._mark_failed(image_id, exc)
            return

        try:
            await self.store.set_result(image_id, annotation, AnnotationStatus.DONE)
        except AnnotationRecordNotFoundError:
            logger.warning(f"Image {image_id} was deleted while being annotated")
            return

        self._log_stage(
            "DONE",
            f"Image {image_id} annotated ({len(annotation.tags)} tags, "
            f"{len(annotation.colors)} colors)",
        )

    async def _analyze(self, image_reference: str) -> Annotation:
        try:
            return await asyncio.wait_for(
                self.client.analyze(image_reference), timeout=self.job_deadline_seconds
            )
        except asyncio.TimeoutError:
            raise AnnotationTimeoutError(
                f"Annotation exceeded the job deadline of {self.job_deadline_seconds}s"
            ) from None

    async def _is_retryable(self, image_id: str, exc: Exception) -> bool:
        if not isinstance(exc, TransientServiceError):
            return False
        record = await self.store.get(image_id)
        if record is None:
            return False
        if record.failed_attempts >= self.job_retry_limit:
            logger.warning(
                f"Image {image_id} failed {record.failed_attempts + 1} times, "
                "no further automatic retries"
            )
            return False
        return True

    async def _mark_failed(self, image_id: str, exc: Exception) -> None:
        retryable = await self._is_retryable(image_id, exc)
        try:
            await self.store.set_failed(image_id, retryable=retryable)
        except AnnotationRecordNotFoundError:
            logger.warning(f"Image {image_id} was deleted while being annotated")
            return
        if retryable:
            logger.info(f"Image {image_id} failed transiently, poller will retry it")
