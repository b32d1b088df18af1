"""
Service Container

Builds and holds every long-lived collaborator of the API process: state
store, image repository, storage, AI client, annotation pipeline and token
verifier. One container per FastAPI app (stored on app.state).

Configuration (environment, .env supported):
    STORE_BACKEND         redis | memory (default: redis)
    MAX_FILES_PER_UPLOAD  default 10
    MAX_UPLOAD_SIZE_MB    default 10
    plus the PipelineConfig, Redis, storage, AI client and API_TOKENS keys
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis

from image_gallery.application.pipeline_config import PipelineConfig
from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.application.ports.thumbnail_generator import (
    ThumbnailGeneratorProtocol,
)
from image_gallery.application.ports.token_verifier import TokenVerifierProtocol
from image_gallery.application.services.annotation_pipeline import AnnotationPipeline
from image_gallery.domain.annotation.repositories.annotation_state_store import (
    ProcessingStateStoreProtocol,
)
from image_gallery.domain.annotation.repositories.image_repository import (
    ImageRepositoryProtocol,
)
from image_gallery.domain.annotation.services.annotation_client import (
    AnnotationClientProtocol,
)
from image_gallery.infrastructure.ai.vision.openai_annotation_client import (
    OpenAIVisionAnnotationClient,
)
from image_gallery.infrastructure.auth.token_verifier import StaticTokenVerifier
from image_gallery.infrastructure.imaging.thumbnail_generator import (
    PillowThumbnailGenerator,
)
from image_gallery.infrastructure.persistence.memory import (
    InMemoryAnnotationStateStore,
    InMemoryImageRepository,
)
from image_gallery.infrastructure.persistence.redis import (
    RedisAnnotationStateStore,
    RedisImageRepository,
    close_connections,
    get_redis_client,
    health_check,
)
from image_gallery.infrastructure.storage.local_image_storage import LocalImageStorage

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Collaborators shared by all requests.

    Attributes:
        config: Pipeline configuration
        state_store: Annotation state store
        image_repository: Image persistence
        storage: Binary storage (LocalImageStorage in production)
        thumbnails: Thumbnail renderer
        client: AI annotation client
        pipeline: Annotation pipeline (started by the FastAPI lifespan)
        token_verifier: Bearer token verifier
        max_files_per_upload: Upload batch limit
        max_upload_size_mb: Per-file size limit
        redis: Redis client when STORE_BACKEND=redis
    """

    config: PipelineConfig
    state_store: ProcessingStateStoreProtocol
    image_repository: ImageRepositoryProtocol
    storage: ImageStorageProtocol
    thumbnails: ThumbnailGeneratorProtocol
    client: AnnotationClientProtocol
    pipeline: AnnotationPipeline
    token_verifier: TokenVerifierProtocol
    max_files_per_upload: int = 10
    max_upload_size_mb: int = 10
    redis: Optional[Redis] = None

    @classmethod
    def create(
        cls,
        config: PipelineConfig,
        state_store: ProcessingStateStoreProtocol,
        image_repository: ImageRepositoryProtocol,
        storage: ImageStorageProtocol,
        client: AnnotationClientProtocol,
        token_verifier: TokenVerifierProtocol,
        thumbnails: Optional[ThumbnailGeneratorProtocol] = None,
        max_files_per_upload: int = 10,
        max_upload_size_mb: int = 10,
        redis: Optional[Redis] = None,
    ) -> "ServiceContainer":
        """Wire a pipeline around the given collaborators."""
        pipeline = AnnotationPipeline(client, state_store, storage, config)
        return cls(
            config=config,
            state_store=state_store,
            image_repository=image_repository,
            storage=storage,
            thumbnails=thumbnails or PillowThumbnailGenerator(),
            client=client,
            pipeline=pipeline,
            token_verifier=token_verifier,
            max_files_per_upload=max_files_per_upload,
            max_upload_size_mb=max_upload_size_mb,
            redis=redis,
        )

    async def store_healthy(self) -> bool:
        if self.redis is None:
            return True
        return await health_check(self.redis)

    async def close(self) -> None:
        if self.redis is not None:
            await close_connections()


async def build_container_from_env() -> ServiceContainer:
    """
    Build the production container from environment variables.

    Raises:
        ValueError: If configuration is invalid (missing secrets, bad numbers)
        RedisError: If STORE_BACKEND=redis and Redis is unreachable
    """
    config = PipelineConfig.from_env()
    backend = os.getenv("STORE_BACKEND", "redis").lower()

    redis: Optional[Redis] = None
    if backend == "redis":
        redis = await get_redis_client()
        state_store: ProcessingStateStoreProtocol = RedisAnnotationStateStore(redis)
        image_repository: ImageRepositoryProtocol = RedisImageRepository(redis)
    elif backend == "memory":
        logger.warning("STORE_BACKEND=memory: annotation state is lost on restart")
        state_store = InMemoryAnnotationStateStore()
        image_repository = InMemoryImageRepository()
    else:
        raise ValueError(f"Unknown STORE_BACKEND '{backend}' (expected redis or memory)")

    client = OpenAIVisionAnnotationClient(
        max_attempts=config.ai_max_attempts,
        backoff_seconds=config.ai_backoff_seconds,
        request_timeout=config.ai_request_timeout_seconds,
    )

    container = ServiceContainer.create(
        config=config,
        state_store=state_store,
        image_repository=image_repository,
        storage=LocalImageStorage(),
        client=client,
        token_verifier=StaticTokenVerifier(),
        max_files_per_upload=int(os.getenv("MAX_FILES_PER_UPLOAD", "10")),
        max_upload_size_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", "10")),
        redis=redis,
    )
    logger.info(f"Service container built (store backend: {backend})")
    return container
