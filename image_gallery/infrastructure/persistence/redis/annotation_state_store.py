"""
Redis Annotation State Store.

Redis-backed implementation of ProcessingStateStoreProtocol.

Storage Structure:
    Redis keys:
        - annotation:{image_id} - JSON document of the AnnotationRecord
        - annotations:by_status:{status} - sorted set of image ids scored by
          updated_at (unix seconds), one per status
        - annotations:retryable - sorted set of failed ids the poller may retry

    Every write updates the document and moves the id between the sorted
    sets in one MULTI/EXEC pipeline, so the document and the indexes never
    disagree for an observer. Updates of an existing record run under WATCH:
    a record deleted while a job was running is never written back.

Business Rules:
    - Records do not expire (no TTL): annotation state lives as long as the image
    - Transition rules are enforced by AnnotationRecord, not here
    - list_* queries read the index oldest first, then re-check each document

Examples:
    >>> store = RedisAnnotationStateStore(await get_redis_client())
    >>> await store.create_pending("img-1", "user-1", "user-1/originals/img-1.jpg")
    >>> await store.set_status("img-1", AnnotationStatus.PROCESSING)
"""

import json
import logging
from datetime import datetime
from typing import Callable, Optional

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import WatchError

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


class RedisAnnotationStateStore:
    """
    Annotation state persisted in Redis.

    Implements ProcessingStateStoreProtocol.
    """

    KEY_PREFIX = "annotation"
    STATUS_INDEX_PREFIX = "annotations:by_status"
    RETRYABLE_INDEX_KEY = "annotations:retryable"

    def __init__(
        self,
        redis: Redis,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            redis: asyncio Redis client (decode_responses=True)
            clock: Source of write timestamps (injectable for tests)
        """
        self.redis = redis
        self._clock = clock

    def _get_record_key(self, image_id: str) -> str:
        """
        Generate Redis key for an annotation record.

        Examples:
            >>> store._get_record_key("abc-123")
            'annotation:abc-123'
        """
        return f"{self.KEY_PREFIX}:{image_id}"

    def _get_status_key(self, status: AnnotationStatus) -> str:
        """
        Generate Redis key of the status index.

        Examples:
            >>> store._get_status_key(AnnotationStatus.PENDING)
            'annotations:by_status:pending'
        """
        return f"{self.STATUS_INDEX_PREFIX}:{AnnotationStatus(status).value}"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _queue_save(self, pipe: Pipeline, record: AnnotationRecord) -> None:
        """Buffer the document write and index moves of one record on pipe."""
        pipe.set(self._get_record_key(record.image_id), json.dumps(record.to_dict()))
        for status in AnnotationStatus:
            if status != record.status:
                pipe.zrem(self._get_status_key(status), record.image_id)
        score = record.updated_at.timestamp()
        pipe.zadd(self._get_status_key(record.status), {record.image_id: score})
        if record.retryable:
            pipe.zadd(self.RETRYABLE_INDEX_KEY, {record.image_id: score})
        else:
            pipe.zrem(self.RETRYABLE_INDEX_KEY, record.image_id)

    async def _update(
        self, image_id: str, apply: Callable[[AnnotationRecord], None]
    ) -> AnnotationRecord:
        """
        Read-modify-write one record under WATCH.

        The write is committed only if the document did not change since it
        was read; on conflict the record is read again. A record deleted in
        between is never written back.

        Raises:
            AnnotationRecordNotFoundError: If the record does not exist (or
                was deleted before the write could commit)
            InvalidStatusTransitionError: If apply() rejects the transition
        """
        key = self._get_record_key(image_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    data = await pipe.get(key)
                    if data is None:
                        raise AnnotationRecordNotFoundError(image_id)
                    record = AnnotationRecord.from_dict(json.loads(data))
                    apply(record)

                    pipe.multi()
                    self._queue_save(pipe, record)
                    await pipe.execute()
                    return record
                except WatchError:
                    logger.debug(f"Record {image_id} changed during update, retrying")

    async def create_pending(
        self, image_id: str, owner_id: str, image_location: str
    ) -> AnnotationRecord:
        record = AnnotationRecord.new_pending(
            image_id, owner_id, image_location, now=self._clock()
        )
        pipe = self.redis.pipeline(transaction=True)
        self._queue_save(pipe, record)
        await pipe.execute()
        logger.info(f"Annotation record for image {image_id} created (pending)")
        return record

    async def set_status(self, image_id: str, status: AnnotationStatus) -> None:
        record = await self._update(
            image_id, lambda record: record.transition_to(status, now=self._clock())
        )
        logger.debug(f"Image {image_id} status -> {record.status.value}")

    async def set_result(
        self,
        image_id: str,
        annotation: Annotation,
        status: AnnotationStatus = AnnotationStatus.DONE,
    ) -> None:
        if AnnotationStatus(status) != AnnotationStatus.DONE:
            raise ValueError("set_result() only stores 'done' records")
        await self._update(
            image_id, lambda record: record.complete(annotation, now=self._clock())
        )

    async def set_failed(self, image_id: str, retryable: bool = False) -> None:
        await self._update(
            image_id,
            lambda record: record.fail(now=self._clock(), retryable=retryable),
        )

    async def delete(self, image_id: str) -> None:
        pipe = self.redis.pipeline(transaction=True)
        pipe.delete(self._get_record_key(image_id))
        for status in AnnotationStatus:
            pipe.zrem(self._get_status_key(status), image_id)
        pipe.zrem(self.RETRYABLE_INDEX_KEY, image_id)
        await pipe.execute()
        logger.debug(f"Annotation record for image {image_id} deleted")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, image_id: str) -> Optional[AnnotationRecord]:
        data = await self.redis.get(self._get_record_key(image_id))
        if data is None:
            return None
        return AnnotationRecord.from_dict(json.loads(data))

    async def get_many(self, image_ids: list[str]) -> dict[str, AnnotationRecord]:
        if not image_ids:
            return {}
        documents = await self.redis.mget(
            [self._get_record_key(image_id) for image_id in image_ids]
        )
        return {
            image_id: AnnotationRecord.from_dict(json.loads(data))
            for image_id, data in zip(image_ids, documents)
            if data is not None
        }

    async def _list_older_than(
        self,
        index_key: str,
        status: AnnotationStatus,
        older_than: datetime,
        limit: int,
    ) -> list[StuckAnnotation]:
        if limit <= 0:
            return []

        image_ids = await self.redis.zrangebyscore(
            index_key,
            "-inf",
            f"({older_than.timestamp()}",
            start=0,
            num=limit,
        )
        if not image_ids:
            return []

        documents = await self.redis.mget(
            [self._get_record_key(image_id) for image_id in image_ids]
        )

        stuck: list[StuckAnnotation] = []
        for image_id, data in zip(image_ids, documents):
            if data is None:
                logger.warning(f"Index '{index_key}' references missing record {image_id}")
                continue
            record = AnnotationRecord.from_dict(json.loads(data))
            if record.status == status and record.is_older_than(older_than):
                stuck.append(StuckAnnotation.from_record(record))
        return stuck

    async def list_stuck_pending(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        return await self._list_older_than(
            self._get_status_key(AnnotationStatus.PENDING),
            AnnotationStatus.PENDING,
            older_than,
            limit,
        )

    async def list_stale_processing(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        return await self._list_older_than(
            self._get_status_key(AnnotationStatus.PROCESSING),
            AnnotationStatus.PROCESSING,
            older_than,
            limit,
        )

    async def list_retryable_failed(
        self, older_than: datetime, limit: int
    ) -> list[StuckAnnotation]:
        return await self._list_older_than(
            self.RETRYABLE_INDEX_KEY, AnnotationStatus.FAILED, older_than, limit
        )
