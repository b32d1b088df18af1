"""
Tests for RedisAnnotationStateStore.

Covers:
- Key naming (record documents and status indexes)
- Atomic MULTI/EXEC writes moving ids between status and retryable indexes
- WATCH-guarded updates: a record deleted mid-update is never written back
- Transition rules enforced before writing
- Stuck/stale/retryable listing from the indexes with document re-check
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import WatchError

from image_gallery.domain.annotation.entities.annotation_record import (
    AnnotationRecord,
    AnnotationStatus,
)
from image_gallery.domain.annotation.value_objects.annotation import Annotation
from image_gallery.domain.shared.exceptions import (
    AnnotationRecordNotFoundError,
    InvalidStatusTransitionError,
)
from image_gallery.infrastructure.persistence.redis.annotation_state_store import (
    RedisAnnotationStateStore,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def mock_pipeline():
    """
    Mock MULTI/EXEC pipeline.

    watch() and get() run immediately (awaited), commands after multi() are
    queued sync, execute() is awaited. Usable as "async with".
    """
    pipe = MagicMock()
    pipe.__aenter__.return_value = pipe
    pipe.__aexit__.return_value = False
    pipe.watch = AsyncMock()
    pipe.get = AsyncMock(return_value=None)
    pipe.execute = AsyncMock(return_value=[])
    return pipe


@pytest.fixture
def mock_redis(mock_pipeline):
    """Mock asyncio Redis client."""
    redis = MagicMock()
    redis.pipeline.return_value = mock_pipeline
    redis.get = AsyncMock(return_value=None)
    redis.mget = AsyncMock(return_value=[])
    redis.zrangebyscore = AsyncMock(return_value=[])
    return redis


@pytest.fixture
def store(mock_redis):
    return RedisAnnotationStateStore(mock_redis, clock=lambda: NOW)


def record_json(
    image_id: str = "img-1",
    status: AnnotationStatus = AnnotationStatus.PENDING,
    updated_at: datetime = NOW,
    retryable: bool = False,
) -> str:
    record = AnnotationRecord.new_pending(image_id, "user-1", "loc", now=updated_at)
    if status == AnnotationStatus.DONE:
        record.transition_to(AnnotationStatus.PROCESSING, now=updated_at)
        record.complete(Annotation(description="A cat"), now=updated_at)
    elif status == AnnotationStatus.FAILED:
        record.fail(now=updated_at, retryable=retryable)
    elif status != AnnotationStatus.PENDING:
        record.transition_to(status, now=updated_at)
    return json.dumps(record.to_dict())


def stored_document(mock_pipeline) -> dict:
    """Return the JSON document queued with pipe.set()."""
    return json.loads(mock_pipeline.set.call_args[0][1])


# ============================================================================
# KEY TESTS
# ============================================================================


def test_key_naming(store):
    """Test record and status index keys."""
    assert store._get_record_key("abc-123") == "annotation:abc-123"
    assert store._get_status_key(AnnotationStatus.PENDING) == (
        "annotations:by_status:pending"
    )


# ============================================================================
# WRITE TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_create_pending_writes_document_and_index(
    store, mock_redis, mock_pipeline
):
    """Test create_pending stores JSON and indexes the id under pending."""
    # Act
    record = await store.create_pending("img-1", "user-1", "user-1/originals/img-1.jpg")

    # Assert
    mock_redis.pipeline.assert_called_once_with(transaction=True)
    assert mock_pipeline.set.call_args[0][0] == "annotation:img-1"
    document = stored_document(mock_pipeline)
    assert document["status"] == "pending"
    assert document["image_location"] == "user-1/originals/img-1.jpg"
    assert document["description"] is None

    removed_from = {c.args[0] for c in mock_pipeline.zrem.call_args_list}
    assert removed_from == {
        "annotations:by_status:processing",
        "annotations:by_status:done",
        "annotations:by_status:failed",
        "annotations:retryable",
    }
    mock_pipeline.zadd.assert_called_once_with(
        "annotations:by_status:pending", {"img-1": NOW.timestamp()}
    )
    mock_pipeline.execute.assert_awaited_once()
    assert record.status == AnnotationStatus.PENDING


@pytest.mark.asyncio
async def test_set_status_moves_record_to_processing(store, mock_redis, mock_pipeline):
    """Test set_status watches, reads, transitions and rewrites the record."""
    mock_pipeline.get.return_value = record_json()

    await store.set_status("img-1", AnnotationStatus.PROCESSING)

    mock_pipeline.watch.assert_awaited_once_with("annotation:img-1")
    mock_pipeline.get.assert_awaited_once_with("annotation:img-1")
    mock_pipeline.multi.assert_called_once()
    mock_pipeline.execute.assert_awaited_once()
    assert stored_document(mock_pipeline)["status"] == "processing"
    mock_pipeline.zadd.assert_called_once_with(
        "annotations:by_status:processing", {"img-1": NOW.timestamp()}
    )


@pytest.mark.asyncio
async def test_set_result_stores_annotation(store, mock_redis, mock_pipeline):
    """Test set_result writes done status with annotation fields."""
    mock_pipeline.get.return_value = record_json(status=AnnotationStatus.PROCESSING)

    await store.set_result(
        "img-1", Annotation(description="A cat", tags=["cat"], colors=["black"])
    )

    document = stored_document(mock_pipeline)
    assert document["status"] == "done"
    assert document["description"] == "A cat"
    assert document["tags"] == ["cat"]
    assert document["colors"] == ["black"]


@pytest.mark.asyncio
async def test_set_failed_clears_annotation(store, mock_redis, mock_pipeline):
    """Test set_failed writes failed status without annotation fields."""
    mock_pipeline.get.return_value = record_json(status=AnnotationStatus.PROCESSING)

    await store.set_failed("img-1")

    document = stored_document(mock_pipeline)
    assert document["status"] == "failed"
    assert document["tags"] is None
    assert document["retryable"] is False
    mock_pipeline.zrem.assert_any_call("annotations:retryable", "img-1")


@pytest.mark.asyncio
async def test_set_failed_retryable_indexes_record(store, mock_pipeline):
    """Test a retryable failure is added to the retryable index."""
    mock_pipeline.get.return_value = record_json(status=AnnotationStatus.PROCESSING)

    await store.set_failed("img-1", retryable=True)

    document = stored_document(mock_pipeline)
    assert document["retryable"] is True
    assert document["failed_attempts"] == 1
    mock_pipeline.zadd.assert_any_call(
        "annotations:retryable", {"img-1": NOW.timestamp()}
    )


@pytest.mark.asyncio
async def test_delete_removes_document_and_all_indexes(store, mock_pipeline):
    """Test delete clears the document and every status index."""
    await store.delete("img-1")

    mock_pipeline.delete.assert_called_once_with("annotation:img-1")
    assert mock_pipeline.zrem.call_count == 5
    mock_pipeline.execute.assert_awaited_once()


# ============================================================================
# WRITE ERROR TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_set_status_missing_record_raises(store, mock_pipeline):
    """Test writes to a missing record raise AnnotationRecordNotFoundError."""
    with pytest.raises(AnnotationRecordNotFoundError):
        await store.set_status("img-1", AnnotationStatus.PROCESSING)

    mock_pipeline.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_record_deleted_during_update_is_not_written_back(store, mock_pipeline):
    """Test a delete between read and commit aborts the write instead of resurrecting."""
    # Arrange: the first read sees the record, a delete then touches the
    # watched key (EXEC fails), the second read finds nothing
    mock_pipeline.get.side_effect = [
        record_json(status=AnnotationStatus.PROCESSING),
        None,
    ]
    mock_pipeline.execute.side_effect = WatchError("Watched variable changed")

    # Act / Assert
    with pytest.raises(AnnotationRecordNotFoundError):
        await store.set_result("img-1", Annotation(description="A cat"))

    assert mock_pipeline.watch.await_count == 2
    mock_pipeline.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_retries_after_concurrent_change(store, mock_pipeline):
    """Test a conflicting write makes the update re-read and commit again."""
    mock_pipeline.get.side_effect = [
        record_json(status=AnnotationStatus.PROCESSING),
        record_json(status=AnnotationStatus.PROCESSING),
    ]
    mock_pipeline.execute.side_effect = [WatchError("changed"), []]

    await store.set_failed("img-1")

    assert mock_pipeline.execute.await_count == 2
    assert stored_document(mock_pipeline)["status"] == "failed"


@pytest.mark.asyncio
async def test_invalid_transition_is_not_written(store, mock_redis, mock_pipeline):
    """Test done -> processing is rejected before any write."""
    mock_pipeline.get.return_value = record_json(status=AnnotationStatus.DONE)

    with pytest.raises(InvalidStatusTransitionError):
        await store.set_status("img-1", AnnotationStatus.PROCESSING)

    mock_pipeline.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_set_result_rejects_non_done_status(store):
    """Test set_result only accepts status done."""
    with pytest.raises(ValueError):
        await store.set_result("img-1", Annotation(), AnnotationStatus.FAILED)


# ============================================================================
# READ TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_get_returns_none_for_missing_record(store):
    """Test get returns None when the key does not exist."""
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_get_deserializes_done_record(store, mock_redis):
    """Test get rebuilds the record with its annotation."""
    mock_redis.get.return_value = record_json(status=AnnotationStatus.DONE)

    record = await store.get("img-1")

    assert record.status == AnnotationStatus.DONE
    assert record.description == "A cat"
    assert record.updated_at == NOW


@pytest.mark.asyncio
async def test_list_stuck_pending_reads_index_oldest_first(store, mock_redis):
    """Test the pending index is queried strictly below the cutoff with a limit."""
    old = NOW - timedelta(minutes=5)
    mock_redis.zrangebyscore.return_value = ["img-1", "img-2"]
    mock_redis.mget.return_value = [
        record_json("img-1", updated_at=old),
        record_json("img-2", updated_at=old),
    ]
    cutoff = NOW - timedelta(seconds=90)

    stuck = await store.list_stuck_pending(cutoff, 5)

    mock_redis.zrangebyscore.assert_awaited_once_with(
        "annotations:by_status:pending",
        "-inf",
        f"({cutoff.timestamp()}",
        start=0,
        num=5,
    )
    mock_redis.mget.assert_awaited_once_with(["annotation:img-1", "annotation:img-2"])
    assert [s.image_id for s in stuck] == ["img-1", "img-2"]
    assert stuck[0].status == AnnotationStatus.PENDING
    assert stuck[0].image_location == "loc"


@pytest.mark.asyncio
async def test_list_skips_missing_and_changed_records(store, mock_redis):
    """Test index entries whose document is gone or has moved on are skipped."""
    old = NOW - timedelta(minutes=5)
    mock_redis.zrangebyscore.return_value = ["gone", "moved", "stuck"]
    mock_redis.mget.return_value = [
        None,
        record_json("moved", status=AnnotationStatus.PROCESSING, updated_at=old),
        record_json("stuck", updated_at=old),
    ]

    stuck = await store.list_stuck_pending(NOW, 5)

    assert [s.image_id for s in stuck] == ["stuck"]


@pytest.mark.asyncio
async def test_list_stale_processing_uses_processing_index(store, mock_redis):
    """Test stale processing listing queries the processing index."""
    await store.list_stale_processing(NOW, 3)

    assert mock_redis.zrangebyscore.call_args[0][0] == (
        "annotations:by_status:processing"
    )
    mock_redis.mget.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_with_zero_limit_skips_redis(store, mock_redis):
    """Test limit <= 0 returns [] without querying."""
    assert await store.list_stuck_pending(NOW, 0) == []

    mock_redis.zrangebyscore.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_retryable_failed_uses_retryable_index(store, mock_redis):
    """Test retryable listing reads the retryable index and keeps failed records."""
    old = NOW - timedelta(minutes=5)
    mock_redis.zrangebyscore.return_value = ["retry", "reanalyzed"]
    mock_redis.mget.return_value = [
        record_json("retry", AnnotationStatus.FAILED, old, retryable=True),
        record_json("reanalyzed", updated_at=old),
    ]

    stuck = await store.list_retryable_failed(NOW, 5)

    assert mock_redis.zrangebyscore.call_args[0][0] == "annotations:retryable"
    assert [s.image_id for s in stuck] == ["retry"]
    assert stuck[0].status == AnnotationStatus.FAILED


@pytest.mark.asyncio
async def test_get_many_skips_missing_records(store, mock_redis):
    """Test get_many reads all documents in one MGET."""
    mock_redis.mget.return_value = [record_json("img-1"), None]

    records = await store.get_many(["img-1", "img-2"])

    mock_redis.mget.assert_awaited_once_with(["annotation:img-1", "annotation:img-2"])
    assert list(records) == ["img-1"]
    assert records["img-1"].status == AnnotationStatus.PENDING


@pytest.mark.asyncio
async def test_get_many_with_no_ids_skips_redis(store, mock_redis):
    """Test an empty id list returns {} without querying."""
    assert await store.get_many([]) == {}

    mock_redis.mget.assert_not_awaited()
