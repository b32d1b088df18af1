"""
GetImageAnnotationQuery - CQRS Read Query

Query object and handler for reading an image and its annotation state.
Part of CQRS pattern - separates read operations from write operations.

Responsibility:
    - Query: Data holder with image_id and the requesting user
    - Handler: Reads Image + AnnotationRecord and builds the result DTOs

Business Rules:
    - Annotation fields (description, tags, colors) are returned only when
      status == "done"; pending/processing/failed never expose partial data
    - Images of other users are reported as not found
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from image_gallery.application.pipeline_config import PipelineConfig
from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.domain.annotation.entities.annotation_record import (
    AnnotationRecord,
    AnnotationStatus,
)
from image_gallery.domain.annotation.entities.image import Image
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    ProcessingStateStoreProtocol,
)
from image_gallery.domain.annotation.repositories.image_repository import (
    ImageRepositoryProtocol,
)
from image_gallery.domain.shared.exceptions import (
    AnnotationRecordNotFoundError,
    ImageNotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)


class GetImageAnnotationQuery(BaseModel):
    """
    Query object for one image.

    Attributes:
        image_id: Image to read
        owner_id: Authenticated user (must own the image)
    """

    image_id: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)


class AnnotationStatusResult(BaseModel):
    """
    Annotation view of one image.

    Attributes:
        image_id: Image id
        status: pending | processing | done | failed
        description: Caption (None unless done)
        tags: Keyword tags (None unless done)
        colors: Dominant colors (None unless done)
        created_at: Record creation (ISO string)
        updated_at: Last status write (ISO string)
    """

    image_id: str
    status: str
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    colors: Optional[list[str]] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: AnnotationRecord) -> "AnnotationStatusResult":
        done = record.status == AnnotationStatus.DONE
        return cls(
            image_id=record.image_id,
            status=record.status.value,
            description=record.description if done else None,
            tags=list(record.tags) if done and record.tags is not None else None,
            colors=list(record.colors) if done and record.colors is not None else None,
            created_at=record.created_at.isoformat(),
            updated_at=record.updated_at.isoformat(),
        )


class ImageDetailsResult(BaseModel):
    """Image with signed URLs and its annotation view."""

    image_id: str
    filename: str
    content_type: str
    uploaded_at: str
    original_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    annotation: AnnotationStatusResult


class GetImageAnnotationQueryHandler:
    """
    Handler for reading image and annotation state.

    Architecture:
        API Layer -> QueryHandler -> ImageRepository + ProcessingStateStore
    """

    def __init__(
        self,
        image_repository: ImageRepositoryProtocol,
        state_store: ProcessingStateStoreProtocol,
        storage: ImageStorageProtocol,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self.image_repository = image_repository
        self.state_store = state_store
        self.storage = storage
        self.config = config or PipelineConfig.default()

    async def _get_owned_image(self, query: GetImageAnnotationQuery) -> Image:
        image = await self.image_repository.get(query.image_id)
        if image is None or not image.is_owned_by(query.owner_id):
            raise ImageNotFoundError(query.image_id)
        return image

    async def _get_record(self, image_id: str) -> AnnotationRecord:
        record = await self.state_store.get(image_id)
        if record is None:
            raise AnnotationRecordNotFoundError(image_id)
        return record

    async def _signed_url(self, location: Optional[str]) -> Optional[str]:
        if not location:
            return None
        try:
            return await self.storage.resolve_temporary_access(
                location, self.config.signed_url_ttl_seconds
            )
        except StorageError as e:
            logger.warning(f"Could not sign URL for {location}: {e}")
            return None

    async def get_annotation(
        self, query: GetImageAnnotationQuery
    ) -> AnnotationStatusResult:
        """
        Raises:
            ImageNotFoundError: If the image is missing or not owned by the user
            AnnotationRecordNotFoundError: If the image has no record
        """
        await self._get_owned_image(query)
        return AnnotationStatusResult.from_record(await self._get_record(query.image_id))

    async def _build_details(
        self, image: Image, record: AnnotationRecord
    ) -> ImageDetailsResult:
        return ImageDetailsResult(
            image_id=image.id,
            filename=image.filename,
            content_type=image.content_type,
            uploaded_at=image.uploaded_at.isoformat(),
            original_url=await self._signed_url(image.original_location),
            thumbnail_url=await self._signed_url(image.thumbnail_location),
            annotation=AnnotationStatusResult.from_record(record),
        )

    async def get_image(self, query: GetImageAnnotationQuery) -> ImageDetailsResult:
        image = await self._get_owned_image(query)
        return await self._build_details(image, await self._get_record(image.id))
