"""
Image Delete Use Case

Deletes an image and cascades to its annotation record and stored files.
"""

import logging

from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.domain.annotation.entities.image import Image
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    ProcessingStateStoreProtocol,
)
from image_gallery.domain.annotation.repositories.image_repository import (
    ImageRepositoryProtocol,
)
from image_gallery.domain.shared.exceptions import (
    ImageNotFoundError,
    InvalidInputError,
    StorageError,
)

logger = logging.getLogger(__name__)


class ImageDeleteUseCase:
    """
    Cascade order: annotation record, image, files. A job still running for
    the image finds no record afterwards and stops without writing.
    """

    def __init__(
        self,
        image_repository: ImageRepositoryProtocol,
        state_store: ProcessingStateStoreProtocol,
        storage: ImageStorageProtocol,
    ) -> None:
        self.image_repository = image_repository
        self.state_store = state_store
        self.storage = storage

    async def execute(self, owner_id: str, image_id: str) -> None:
        """
        Raises:
            ImageNotFoundError: If the image does not exist or belongs to another user
        """
        image = await self.image_repository.get(image_id)
        if image is None or not image.is_owned_by(owner_id):
            raise ImageNotFoundError(image_id)

        await self._cascade(image)
        logger.info(f"Image {image_id} deleted by user {owner_id}")

    async def execute_many(self, owner_id: str, image_ids: list[str]) -> int:
        """
        Delete every listed image the user owns; unknown ids and images of
        other users are skipped.

        Returns:
            Number of images deleted

        Raises:
            InvalidInputError: If image_ids is empty
            ImageNotFoundError: If none of the ids is an image of the user
        """
        if not image_ids:
            raise InvalidInputError("ids must contain at least one image id", field_name="ids")

        deleted = 0
        for image_id in dict.fromkeys(image_ids):
            image = await self.image_repository.get(image_id)
            if image is None or not image.is_owned_by(owner_id):
                logger.debug(f"Batch delete by {owner_id} skips image {image_id}")
                continue
            await self._cascade(image)
            deleted += 1

        if deleted == 0:
            raise ImageNotFoundError(", ".join(image_ids))

        logger.info(f"{deleted} images deleted by user {owner_id}")
        return deleted

    async def _cascade(self, image: Image) -> None:
        await self.state_store.delete(image.id)
        await self.image_repository.delete(image.id)

        for location in image.storage_locations():
            try:
                await self.storage.delete(location)
            except StorageError as e:
                logger.error(f"Failed to delete file {location} of image {image.id}: {e}")
