"""
ProcessingStateStore Interface

Repository interface for per-image annotation state. This is the only shared
mutable state of the pipeline: the orchestrator writes it, the reconciliation
poller reads it.

Responsibility:
    - Define data access contract for AnnotationRecord (interface)
    - Enable Dependency Inversion (Domain defines, Infrastructure implements)
    - Let the backend be swapped (Redis, in-memory, SQL) without touching
      pipeline logic

Architecture Notes:
    - Repository Pattern
    - Protocol-based interface (structural typing)
    - Async methods (the pipeline runs on one asyncio event loop)
    - Implementations: RedisAnnotationStateStore, InMemoryAnnotationStateStore
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from ..entities.annotation_record import AnnotationRecord, AnnotationStatus
from ..value_objects.annotation import Annotation


@dataclass(frozen=True)
class StuckAnnotation:
    """
    Reference to a record the reconciliation poller should resubmit.

    Attributes:
        image_id: Image whose annotation never completed
        owner_id: Owner of the image
        image_location: Storage location used to mint a temporary access URL
        status: Status the record was found in (pending, stale processing or
            retryable failed)
        updated_at: Last write of the record
    """

    image_id: str
    owner_id: str
    image_location: str
    status: AnnotationStatus
    updated_at: datetime

    @classmethod
    def from_record(cls, record: AnnotationRecord) -> "StuckAnnotation":
        return cls(
            image_id=record.image_id,
            owner_id=record.owner_id,
            image_location=record.image_location,
            status=record.status,
            updated_at=record.updated_at,
        )


class ProcessingStateStoreProtocol(Protocol):
    """
    Protocol defining the contract for annotation state persistence.

    All writes are keyed by image id and idempotent: re-setting the same
    status or result twice is harmless. Transition rules are enforced by
    AnnotationRecord, so every implementation behaves identically.

    Usage:
        Store is injected into the orchestrator and the poller:

        >>> orchestrator = AnnotationOrchestrator(queue, client, store)
        >>> poller = ReconciliationPoller(store, storage, orchestrator)
    """

    async def create_pending(
        self, image_id: str, owner_id: str, image_location: str
    ) -> AnnotationRecord:
        """
        Create (or reset) the record for a freshly uploaded image.

        Returns:
            The stored record with status=pending
        """
        ...

    async def get(self, image_id: str) -> Optional[AnnotationRecord]:
        """Return the record or None if the image has no record."""
        ...

    async def get_many(self, image_ids: list[str]) -> dict[str, AnnotationRecord]:
        """Return the existing records of image_ids keyed by image id."""
        ...

    async def set_status(self, image_id: str, status: AnnotationStatus) -> None:
        """
        Move a record to pending, processing or failed.

        Raises:
            AnnotationRecordNotFoundError: If no record exists
            InvalidStatusTransitionError: If the transition is not allowed
        """
        ...

    async def set_result(
        self,
        image_id: str,
        annotation: Annotation,
        status: AnnotationStatus = AnnotationStatus.DONE,
    ) -> None:
        """
        Store the annotation and mark the record done in one write.

        Raises:
            AnnotationRecordNotFoundError: If no record exists
            InvalidStatusTransitionError: If the record cannot become done
        """
        ...

    async def set_failed(self, image_id: str, retryable: bool = False) -> None:
        """
        Mark the record failed and clear annotation fields.

        Args:
            image_id: Record to update
            retryable: Whether the poller may submit the job again

        Raises:
            AnnotationRecordNotFoundError: If no record exists
        """
        ...

    async def list_stuck_pending(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        """
        Return pending records whose updated_at is before older_than.

        Args:
            older_than: Liveness cutoff (now - liveness window)
            limit: Maximum number of records (oldest first)
        """
        ...

    async def list_stale_processing(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        """Return processing records abandoned mid-job (e.g. by a crash)."""
        ...

    async def list_retryable_failed(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        """Return failed records flagged retryable, oldest first."""
        ...

    async def delete(self, image_id: str) -> None:
        """Delete the record (no-op if missing)."""
        ...
