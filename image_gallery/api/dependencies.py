"""
Dependency Injection

FastAPI dependencies resolving the ServiceContainer of the running app into
use cases, query handlers and the authenticated user id.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from image_gallery.api.container import ServiceContainer
from image_gallery.application.queries.get_image_annotation import (
    GetImageAnnotationQueryHandler,
)
from image_gallery.application.queries.search_images import SearchImagesQueryHandler
from image_gallery.application.services.image_delete_use_case import (
    ImageDeleteUseCase,
)
from image_gallery.application.services.image_reanalysis_use_case import (
    ImageReanalysisUseCase,
)
from image_gallery.application.services.image_upload_use_case import (
    ImageUploadUseCase,
)
from image_gallery.domain.shared.exceptions import UnauthorizedError


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    container: ServiceContainer = Depends(get_container),
) -> str:
    """
    Resolve "Authorization: Bearer <token>" to a user id.

    Raises:
        UnauthorizedError: If the header is missing, malformed or unknown
    """
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Authorization header must be 'Bearer <token>'")

    return container.token_verifier.verify(token.strip())


def get_image_upload_use_case(
    container: ServiceContainer = Depends(get_container),
) -> ImageUploadUseCase:
    return ImageUploadUseCase(
        image_repository=container.image_repository,
        state_store=container.state_store,
        storage=container.storage,
        thumbnails=container.thumbnails,
        pipeline=container.pipeline,
        config=container.config,
        max_files=container.max_files_per_upload,
        max_size_mb=container.max_upload_size_mb,
    )


def get_image_delete_use_case(
    container: ServiceContainer = Depends(get_container),
) -> ImageDeleteUseCase:
    return ImageDeleteUseCase(
        image_repository=container.image_repository,
        state_store=container.state_store,
        storage=container.storage,
    )


def get_image_reanalysis_use_case(
    container: ServiceContainer = Depends(get_container),
) -> ImageReanalysisUseCase:
    return ImageReanalysisUseCase(
        image_repository=container.image_repository,
        storage=container.storage,
        pipeline=container.pipeline,
        config=container.config,
    )


def get_image_annotation_query_handler(
    container: ServiceContainer = Depends(get_container),
) -> GetImageAnnotationQueryHandler:
    return GetImageAnnotationQueryHandler(
        image_repository=container.image_repository,
        state_store=container.state_store,
        storage=container.storage,
        config=container.config,
    )


def get_search_images_query_handler(
    container: ServiceContainer = Depends(get_container),
) -> SearchImagesQueryHandler:
    return SearchImagesQueryHandler(
        image_repository=container.image_repository,
        state_store=container.state_store,
        storage=container.storage,
        config=container.config,
    )
