"""
Image Re-analysis Use Case

Explicit user request to annotate an image again: the record goes back to
pending and a new job is submitted with a freshly minted access URL.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from image_gallery.application.pipeline_config import PipelineConfig
from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.application.services.annotation_pipeline import AnnotationPipeline
from image_gallery.domain.annotation.entities.annotation_record import AnnotationStatus
from image_gallery.domain.annotation.repositories.image_repository import (
    ImageRepositoryProtocol,
)
from image_gallery.domain.shared.exceptions import ImageNotFoundError

logger = logging.getLogger(__name__)


class ReanalysisResult(BaseModel):
    image_id: str
    status: str = AnnotationStatus.PENDING.value
    queued: bool


class ImageReanalysisUseCase:
    def __init__(
        self,
        image_repository: ImageRepositoryProtocol,
        storage: ImageStorageProtocol,
        pipeline: AnnotationPipeline,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self.image_repository = image_repository
        self.storage = storage
        self.pipeline = pipeline
        self.config = config or PipelineConfig.default()

    async def execute(self, owner_id: str, image_id: str) -> ReanalysisResult:
        """
        Raises:
            ImageNotFoundError: If the image does not exist or belongs to another user
            AnnotationRecordNotFoundError: If the image has no annotation record
            InvalidStatusTransitionError: If the image is currently being annotated
            StorageError: If no access URL can be minted for the original
        """
        image = await self.image_repository.get(image_id)
        if image is None or not image.is_owned_by(owner_id):
            raise ImageNotFoundError(image_id)

        reference = await self.storage.resolve_temporary_access(
            image.original_location, self.config.signed_url_ttl_seconds
        )
        queued = await self.pipeline.reanalyze(image_id, owner_id, reference)
        logger.info(f"Re-analysis requested for image {image_id} (queued={queued})")
        return ReanalysisResult(image_id=image_id, queued=queued)
