"""
Redis Image Repository.

Storage Structure:
    Redis keys:
        - image:{image_id} - JSON document of the Image
        - images:by_owner:{owner_id} - sorted set of the owner's image ids
          scored by uploaded_at (unix seconds)

    The document and the owner index are written and removed together in
    one MULTI/EXEC pipeline.
"""

import json
import logging
from typing import Optional

from redis.asyncio import Redis

from image_gallery.domain.annotation.entities.image import Image

logger = logging.getLogger(__name__)


class RedisImageRepository:
    """Implements ImageRepositoryProtocol on top of an asyncio Redis client."""

    KEY_PREFIX = "image"
    OWNER_INDEX_PREFIX = "images:by_owner"

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    def _get_image_key(self, image_id: str) -> str:
        return f"{self.KEY_PREFIX}:{image_id}"

    def _get_owner_key(self, owner_id: str) -> str:
        return f"{self.OWNER_INDEX_PREFIX}:{owner_id}"

    async def save(self, image: Image) -> None:
        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self._get_image_key(image.id), json.dumps(image.to_dict()))
        pipe.zadd(
            self._get_owner_key(image.owner_id), {image.id: image.uploaded_at.timestamp()}
        )
        await pipe.execute()
        logger.debug(f"Image {image.id} saved")

    async def get(self, image_id: str) -> Optional[Image]:
        data = await self.redis.get(self._get_image_key(image_id))
        if data is None:
            return None
        return Image.from_dict(json.loads(data))

    async def delete(self, image_id: str) -> bool:
        image = await self.get(image_id)
        if image is None:
            return False

        pipe = self.redis.pipeline(transaction=True)
        pipe.delete(self._get_image_key(image_id))
        pipe.zrem(self._get_owner_key(image.owner_id), image_id)
        deleted, _ = await pipe.execute()
        return bool(deleted)

    async def list_by_owner(
        self, owner_id: str, offset: int = 0, limit: Optional[int] = None
    ) -> list[Image]:
        if limit is not None and limit <= 0:
            return []
        end = -1 if limit is None else offset + limit - 1
        image_ids = await self.redis.zrevrange(self._get_owner_key(owner_id), offset, end)
        if not image_ids:
            return []

        documents = await self.redis.mget(
            [self._get_image_key(image_id) for image_id in image_ids]
        )
        images = []
        for image_id, data in zip(image_ids, documents):
            if data is None:
                logger.warning(f"Owner index of {owner_id} references missing image {image_id}")
                continue
            images.append(Image.from_dict(json.loads(data)))
        return images

    async def count_by_owner(self, owner_id: str) -> int:
        return await self.redis.zcard(self._get_owner_key(owner_id))
