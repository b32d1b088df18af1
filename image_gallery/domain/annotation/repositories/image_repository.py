"""
ImageRepository Interface

Persistence contract for Image entities: single-image CRUD plus the
per-owner listing the gallery views page through. Filtering by annotation
belongs to the query layer, which joins listed images with their
AnnotationRecords.
"""

from typing import Optional, Protocol

from ..entities.image import Image


class ImageRepositoryProtocol(Protocol):
    """
    Protocol for storing and retrieving uploaded images.

    Implementations: RedisImageRepository, InMemoryImageRepository.
    """

    async def save(self, image: Image) -> None:
        """Persist a new image (overwrites an existing id)."""
        ...

    async def get(self, image_id: str) -> Optional[Image]:
        """Return the image or None if it does not exist."""
        ...

    async def delete(self, image_id: str) -> bool:
        """Delete the image; return True if something was deleted."""
        ...

    async def list_by_owner(
        self, owner_id: str, offset: int = 0, limit: Optional[int] = None
    ) -> list[Image]:
        """
        List one owner's images, newest upload first.

        Args:
            owner_id: Owner whose images to list
            offset: Number of images to skip
            limit: Maximum number of images (None = all remaining)
        """
        ...

    async def count_by_owner(self, owner_id: str) -> int:
        """Number of images owned by owner_id."""
        ...
