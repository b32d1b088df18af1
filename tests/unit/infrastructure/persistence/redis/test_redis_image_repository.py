"""
Tests for RedisImageRepository.

Covers:
- Document and owner index written together
- Delete removes both and reports whether the image existed
- Owner listing newest first, with offset/limit mapped to ZREVRANGE
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from image_gallery.domain.annotation.entities.image import Image
from image_gallery.infrastructure.persistence.redis.image_repository import (
    RedisImageRepository,
)

UPLOADED_AT = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def mock_pipeline():
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, 1])
    return pipe


@pytest.fixture
def mock_redis(mock_pipeline):
    redis = MagicMock()
    redis.pipeline.return_value = mock_pipeline
    redis.get = AsyncMock(return_value=None)
    redis.mget = AsyncMock(return_value=[])
    redis.zrevrange = AsyncMock(return_value=[])
    redis.zcard = AsyncMock(return_value=0)
    return redis


@pytest.fixture
def repository(mock_redis):
    return RedisImageRepository(mock_redis)


def make_image(image_id: str = "img-1", owner_id: str = "user-1") -> Image:
    return Image(
        id=image_id,
        owner_id=owner_id,
        filename="cat.jpg",
        original_location=f"{owner_id}/originals/{image_id}.jpg",
        thumbnail_location=f"{owner_id}/thumbnails/{image_id}.jpg",
        content_type="image/jpeg",
        uploaded_at=UPLOADED_AT,
    )


# ============================================================================
# WRITE TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_save_writes_document_and_owner_index(repository, mock_pipeline):
    """Test save stores image:{id} and scores it in the owner index."""
    await repository.save(make_image())

    key, payload = mock_pipeline.set.call_args.args
    assert key == "image:img-1"
    assert json.loads(payload)["filename"] == "cat.jpg"
    mock_pipeline.zadd.assert_called_once_with(
        "images:by_owner:user-1", {"img-1": UPLOADED_AT.timestamp()}
    )
    mock_pipeline.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_removes_document_and_owner_entry(
    repository, mock_redis, mock_pipeline
):
    """Test delete looks up the owner and drops both keys in one pipeline."""
    mock_redis.get.return_value = json.dumps(make_image().to_dict())

    deleted = await repository.delete("img-1")

    assert deleted is True
    mock_pipeline.delete.assert_called_once_with("image:img-1")
    mock_pipeline.zrem.assert_called_once_with("images:by_owner:user-1", "img-1")


@pytest.mark.asyncio
async def test_delete_missing_image_returns_false(repository, mock_pipeline):
    """Test deleting an unknown id touches nothing."""
    assert await repository.delete("missing") is False
    mock_pipeline.execute.assert_not_awaited()


# ============================================================================
# READ TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_get_round_trips_image(repository, mock_redis):
    """Test get rebuilds the Image entity."""
    image = make_image()
    mock_redis.get.return_value = json.dumps(image.to_dict())

    assert await repository.get("img-1") == image


@pytest.mark.asyncio
async def test_get_missing_returns_none(repository):
    """Test get returns None for unknown ids."""
    assert await repository.get("missing") is None


@pytest.mark.asyncio
async def test_list_by_owner_pages_newest_first(repository, mock_redis):
    """Test offset/limit become an inclusive ZREVRANGE window."""
    # Arrange
    mock_redis.zrevrange.return_value = ["img-3", "img-2"]
    mock_redis.mget.return_value = [
        json.dumps(make_image("img-3").to_dict()),
        json.dumps(make_image("img-2").to_dict()),
    ]

    # Act
    images = await repository.list_by_owner("user-1", offset=2, limit=2)

    # Assert
    mock_redis.zrevrange.assert_awaited_once_with("images:by_owner:user-1", 2, 3)
    assert [image.id for image in images] == ["img-3", "img-2"]


@pytest.mark.asyncio
async def test_list_by_owner_without_limit_reads_to_the_end(repository, mock_redis):
    """Test limit=None lists every remaining image."""
    await repository.list_by_owner("user-1")

    mock_redis.zrevrange.assert_awaited_once_with("images:by_owner:user-1", 0, -1)
    mock_redis.mget.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_by_owner_skips_dangling_index_entries(repository, mock_redis):
    """Test ids whose document is gone are left out."""
    mock_redis.zrevrange.return_value = ["img-2", "img-1"]
    mock_redis.mget.return_value = [None, json.dumps(make_image("img-1").to_dict())]

    images = await repository.list_by_owner("user-1")

    assert [image.id for image in images] == ["img-1"]


@pytest.mark.asyncio
async def test_count_by_owner_reads_index_size(repository, mock_redis):
    """Test count uses ZCARD of the owner index."""
    mock_redis.zcard.return_value = 7

    assert await repository.count_by_owner("user-1") == 7
    mock_redis.zcard.assert_awaited_once_with("images:by_owner:user-1")
