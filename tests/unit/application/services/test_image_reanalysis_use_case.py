"""Tests for ImageReanalysisUseCase."""

import pytest

from image_gallery.application.services.annotation_pipeline import AnnotationPipeline
from image_gallery.application.services.image_reanalysis_use_case import (
    ImageReanalysisUseCase,
)
from image_gallery.domain.annotation.entities.annotation_record import AnnotationStatus
from image_gallery.domain.annotation.entities.image import Image
from image_gallery.domain.shared.exceptions import (
    ImageNotFoundError,
    InvalidStatusTransitionError,
    StorageError,
)

OWNER_ID = "user-1"
LOCATION = f"{OWNER_ID}/originals/img-1.jpg"


@pytest.fixture
def pipeline(scripted_client, memory_store, fake_storage, clock):
    return AnnotationPipeline(scripted_client, memory_store, fake_storage, clock=clock)


@pytest.fixture
def use_case(memory_images, fake_storage, pipeline):
    return ImageReanalysisUseCase(memory_images, fake_storage, pipeline)


async def seed(memory_images, memory_store, fake_storage) -> None:
    fake_storage.files[LOCATION] = b"original"
    await memory_images.save(
        Image(id="img-1", owner_id=OWNER_ID, filename="a.jpg", original_location=LOCATION)
    )
    await memory_store.create_pending("img-1", OWNER_ID, LOCATION)


@pytest.mark.asyncio
async def test_reanalyze_done_image(
    use_case, pipeline, memory_images, memory_store, fake_storage, scripted_client
):
    """Test re-analysis of a done image queues a new job with a fresh URL."""
    # Arrange
    await seed(memory_images, memory_store, fake_storage)
    pipeline.start()
    pipeline.submit_for_annotation("img-1", OWNER_ID, "first-url")
    await pipeline.queue.join()

    # Act
    result = await use_case.execute(OWNER_ID, "img-1")
    await pipeline.queue.join()
    await pipeline.stop()

    # Assert
    assert result.image_id == "img-1"
    assert result.status == "pending"
    assert result.queued is True
    assert scripted_client.calls == ["first-url", f"https://files.test/{LOCATION}?ttl=300"]
    assert (await memory_store.get("img-1")).status == AnnotationStatus.DONE


@pytest.mark.asyncio
async def test_reanalyze_unknown_or_foreign_image_raises(
    use_case, memory_images, memory_store, fake_storage
):
    """Test missing and foreign images raise ImageNotFoundError."""
    await seed(memory_images, memory_store, fake_storage)

    with pytest.raises(ImageNotFoundError):
        await use_case.execute(OWNER_ID, "missing")
    with pytest.raises(ImageNotFoundError):
        await use_case.execute("user-2", "img-1")


@pytest.mark.asyncio
async def test_reanalyze_processing_image_raises(
    use_case, memory_images, memory_store, fake_storage
):
    """Test re-analysis during annotation is a conflict."""
    await seed(memory_images, memory_store, fake_storage)
    await memory_store.set_status("img-1", AnnotationStatus.PROCESSING)

    with pytest.raises(InvalidStatusTransitionError):
        await use_case.execute(OWNER_ID, "img-1")


@pytest.mark.asyncio
async def test_reanalyze_missing_file_raises_storage_error(
    use_case, memory_images, memory_store, fake_storage
):
    """Test a missing original surfaces as StorageError and leaves the record."""
    await seed(memory_images, memory_store, fake_storage)
    fake_storage.files.clear()

    with pytest.raises(StorageError):
        await use_case.execute(OWNER_ID, "img-1")

    assert (await memory_store.get("img-1")).status == AnnotationStatus.PENDING
