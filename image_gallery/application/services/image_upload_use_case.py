"""
Image Upload Use Case

Responsibility:
    Stores uploaded images, creates their pending annotation records and
    submits them to the annotation pipeline.

Architecture Notes:
    - Part of Application Layer (Services)
    - Called by API Layer (images.py router)
    - Returns UploadedImageResult DTOs
    - The annotation record is created pending here; every later status
      write goes through the AnnotationOrchestrator

Process Flow (per file):
    1. Validate content type and size, render thumbnail (rejects non-images)
    2. Store original and thumbnail under the owner's folders
    3. Save Image, create AnnotationRecord(status=pending)
    4. Mint a temporary access URL and submit the annotation job
       (if minting fails the record stays pending for the poller)
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from image_gallery.application.pipeline_config import PipelineConfig
from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.application.ports.thumbnail_generator import (
    ThumbnailGeneratorProtocol,
)
from image_gallery.application.services.annotation_pipeline import AnnotationPipeline
from image_gallery.domain.annotation.entities.image import Image
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    ProcessingStateStoreProtocol,
)
from image_gallery.domain.annotation.repositories.image_repository import (
    ImageRepositoryProtocol,
)
from image_gallery.domain.shared.exceptions import (
    InvalidInputError,
    StorageError,
    UnsupportedImageError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES_PER_UPLOAD = 10
DEFAULT_MAX_UPLOAD_SIZE_MB = 10


# ============================================================================
# DATA TRANSFER OBJECTS (DTOs)
# ============================================================================


@dataclass(frozen=True)
class UploadedImageFile:
    """
    One file of a multipart upload, already read into memory.

    Attributes:
        filename: Original filename from user
        content_type: MIME type reported by the client
        data: Raw bytes
    """

    filename: str
    content_type: str
    data: bytes


class UploadedImageResult(BaseModel):
    """
    Result of storing one uploaded image.

    Attributes:
        image_id: Id of the new image
        filename: Original filename
        original_location: Storage location of the original
        thumbnail_location: Storage location of the thumbnail
        status: Annotation status right after upload (always "pending")
        queued: True if an annotation job was submitted immediately
        uploaded_at: Upload timestamp in ISO format
    """

    image_id: str = Field(description="Image id (UUID as string)")
    filename: str
    original_location: str
    thumbnail_location: Optional[str] = None
    status: str = Field(default="pending", description="Annotation status")
    queued: bool = Field(
        description="False if the job is left to the reconciliation poller"
    )
    uploaded_at: str = Field(description="Upload timestamp in ISO 8601 format")


# ============================================================================
# USE CASE
# ============================================================================


class ImageUploadUseCase:
    """
    Upload images and schedule their annotation.

    Examples:
        >>> use_case = ImageUploadUseCase(images, store, storage, thumbnails, pipeline)
        >>> results = await use_case.execute("user-1", [UploadedImageFile("cat.jpg", "image/jpeg", data)])
        >>> results[0].status
        'pending'
    """

    def __init__(
        self,
        image_repository: ImageRepositoryProtocol,
        state_store: ProcessingStateStoreProtocol,
        storage: ImageStorageProtocol,
        thumbnails: ThumbnailGeneratorProtocol,
        pipeline: AnnotationPipeline,
        config: Optional[PipelineConfig] = None,
        max_files: int = DEFAULT_MAX_FILES_PER_UPLOAD,
        max_size_mb: int = DEFAULT_MAX_UPLOAD_SIZE_MB,
    ) -> None:
        self.image_repository = image_repository
        self.state_store = state_store
        self.storage = storage
        self.thumbnails = thumbnails
        self.pipeline = pipeline
        self.config = config or PipelineConfig.default()
        self.max_files = max_files
        self.max_size_bytes = max_size_mb * 1024 * 1024

    def _validate(self, file: UploadedImageFile) -> None:
        if not file.filename:
            raise InvalidInputError("Uploaded file has no filename", field_name="files")
        if not (file.content_type or "").startswith("image/"):
            raise UnsupportedImageError(
                f"Unsupported content type '{file.content_type}', only images are accepted",
                filename=file.filename,
            )
        if not file.data:
            raise UnsupportedImageError("Uploaded file is empty", filename=file.filename)
        if len(file.data) > self.max_size_bytes:
            raise UnsupportedImageError(
                f"File size {len(file.data)} exceeds limit {self.max_size_bytes}",
                filename=file.filename,
            )

    async def execute(
        self, owner_id: str, files: list[UploadedImageFile]
    ) -> list[UploadedImageResult]:
        """
        Store every file and submit its annotation job.

        All files are validated (and thumbnails rendered) before anything is
        stored, so one bad file rejects the whole upload.

        Raises:
            InvalidInputError: If no files or more than max_files were sent
            UnsupportedImageError: If a file is not an acceptable image
            StorageError: If a file cannot be written
        """
        if not files:
            raise InvalidInputError("No files uploaded", field_name="files")
        if len(files) > self.max_files:
            raise InvalidInputError(
                f"Too many files: {len(files)} (max {self.max_files})", field_name="files"
            )

        prepared: list[tuple[UploadedImageFile, bytes]] = []
        for file in files:
            self._validate(file)
            thumbnail = await asyncio.to_thread(
                self.thumbnails.generate, file.data, file.filename
            )
            prepared.append((file, thumbnail))

        results = []
        for file, thumbnail in prepared:
            results.append(await self._store_one(owner_id, file, thumbnail))

        logger.info(f"User {owner_id} uploaded {len(results)} image(s)")
        return results

    async def _store_one(
        self, owner_id: str, file: UploadedImageFile, thumbnail: bytes
    ) -> UploadedImageResult:
        image_id = str(uuid4())
        stored_name = f"{image_id}{Path(file.filename).suffix.lower()}"

        original_location = await self.storage.store(owner_id, stored_name, file.data)
        thumbnail_location = await self.storage.store_thumbnail(
            owner_id, stored_name, thumbnail
        )

        image = Image(
            id=image_id,
            owner_id=owner_id,
            filename=file.filename,
            original_location=original_location,
            thumbnail_location=thumbnail_location,
            content_type=file.content_type,
        )
        await self.image_repository.save(image)
        record = await self.state_store.create_pending(
            image.id, owner_id, original_location
        )

        queued = False
        try:
            reference = await self.storage.resolve_temporary_access(
                original_location, self.config.signed_url_ttl_seconds
            )
        except StorageError as e:
            logger.warning(
                f"Could not mint access URL for image {image.id}, "
                f"leaving it to reconciliation: {e}"
            )
        else:
            queued = self.pipeline.submit_for_annotation(image.id, owner_id, reference)

        return UploadedImageResult(
            image_id=image.id,
            filename=image.filename,
            original_location=original_location,
            thumbnail_location=thumbnail_location,
            status=record.status.value,
            queued=queued,
            uploaded_at=image.uploaded_at.isoformat(),
        )
