"""
Redis Persistence

Contains:
    - connection: shared asyncio connection pool, health check
    - RedisAnnotationStateStore: ProcessingStateStoreProtocol implementation
    - RedisImageRepository: ImageRepositoryProtocol implementation
"""

from .annotation_state_store import RedisAnnotationStateStore
from .connection import close_connections, get_redis_client, health_check
from .image_repository import RedisImageRepository

__all__ = [
    "RedisAnnotationStateStore",
    "RedisImageRepository",
    "get_redis_client",
    "health_check",
    "close_connections",
]
