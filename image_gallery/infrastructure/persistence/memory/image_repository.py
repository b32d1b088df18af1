"""In-memory ImageRepositoryProtocol for tests and local development."""

from typing import Optional

from image_gallery.domain.annotation.entities.image import Image


class InMemoryImageRepository:
    def __init__(self) -> None:
        self._images: dict[str, Image] = {}

    async def save(self, image: Image) -> None:
        self._images[image.id] = image

    async def get(self, image_id: str) -> Optional[Image]:
        return self._images.get(image_id)

    async def delete(self, image_id: str) -> bool:
        return self._images.pop(image_id, None) is not None

    async def list_by_owner(
        self, owner_id: str, offset: int = 0, limit: Optional[int] = None
    ) -> list[Image]:
        owned = sorted(
            (image for image in self._images.values() if image.is_owned_by(owner_id)),
            key=lambda image: image.uploaded_at,
            reverse=True,
        )
        end = None if limit is None else offset + limit
        return owned[offset:end]

    async def count_by_owner(self, owner_id: str) -> int:
        return sum(1 for image in self._images.values() if image.is_owned_by(owner_id))
