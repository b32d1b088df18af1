"""
In-Memory Annotation State Store.

Dict-backed ProcessingStateStoreProtocol for tests and local development
(STORE_BACKEND=memory). State is lost when the process exits.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from image_gallery.domain.annotation.entities.annotation_record import (
    AnnotationRecord,
    AnnotationStatus,
    utc_now,
)
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    StuckAnnotation,
)
from image_gallery.domain.annotation.value_objects.annotation import Annotation
from image_gallery.domain.shared.exceptions import AnnotationRecordNotFoundError

logger = logging.getLogger(__name__)


class InMemoryAnnotationStateStore:
    """
    Implements ProcessingStateStoreProtocol with a plain dict.

    Records are copied on the way in and out, so callers never share an
    entity instance with the store.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._records: dict[str, AnnotationRecord] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def _require(self, image_id: str) -> AnnotationRecord:
        record = self._records.get(image_id)
        if record is None:
            raise AnnotationRecordNotFoundError(image_id)
        return replace(record)

    async def create_pending(
        self, image_id: str, owner_id: str, image_location: str
    ) -> AnnotationRecord:
        record = AnnotationRecord.new_pending(
            image_id, owner_id, image_location, now=self._clock()
        )
        self._records[image_id] = record
        return replace(record)

    async def get(self, image_id: str) -> Optional[AnnotationRecord]:
        record = self._records.get(image_id)
        return replace(record) if record is not None else None

    async def get_many(self, image_ids: list[str]) -> dict[str, AnnotationRecord]:
        return {
            image_id: replace(self._records[image_id])
            for image_id in image_ids
            if image_id in self._records
        }

    async def set_status(self, image_id: str, status: AnnotationStatus) -> None:
        record = self._require(image_id)
        record.transition_to(status, now=self._clock())
        self._records[image_id] = record

    async def set_result(
        self,
        image_id: str,
        annotation: Annotation,
        status: AnnotationStatus = AnnotationStatus.DONE,
    ) -> None:
        if AnnotationStatus(status) != AnnotationStatus.DONE:
            raise ValueError("set_result() only stores 'done' records")
        record = self._require(image_id)
        record.complete(annotation, now=self._clock())
        self._records[image_id] = record

    async def set_failed(self, image_id: str, retryable: bool = False) -> None:
        record = self._require(image_id)
        record.fail(now=self._clock(), retryable=retryable)
        self._records[image_id] = record

    async def delete(self, image_id: str) -> None:
        self._records.pop(image_id, None)

    def _list_older_than(
        self,
        status: AnnotationStatus,
        older_than: datetime,
        limit: int,
        retryable_only: bool = False,
    ) -> list[StuckAnnotation]:
        if limit <= 0:
            return []
        matching = sorted(
            (
                record
                for record in self._records.values()
                if record.status == status
                and record.is_older_than(older_than)
                and (record.retryable or not retryable_only)
            ),
            key=lambda record: record.updated_at,
        )
        return [StuckAnnotation.from_record(record) for record in matching[:limit]]

    async def list_stuck_pending(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        return self._list_older_than(AnnotationStatus.PENDING, older_than, limit)

    async def list_stale_processing(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        return self._list_older_than(AnnotationStatus.PROCESSING, older_than, limit)

    async def list_retryable_failed(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        return self._list_older_than(
            AnnotationStatus.FAILED, older_than, limit, retryable_only=True
        )
