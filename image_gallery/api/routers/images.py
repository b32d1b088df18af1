"""
API Router for Images

Responsibility:
    HTTP interface for uploading images, listing and searching them, reading
    their annotation state, requesting re-analysis and deleting images.

Architecture Notes:
    - Part of API Layer (Presentation)
    - Thin wrappers around Application Layer use cases and queries
    - Annotation happens in the background; uploads return immediately
    - Domain exceptions are mapped to HTTP errors in api/main.py

Contains:
    - POST   /images/uploads             - Upload up to 10 images
    - GET    /images                     - Page through own images, newest first
    - GET    /images/search              - Search annotated images
    - DELETE /images                     - Delete several images
    - GET    /images/{image_id}          - Image with signed URLs and annotation
    - GET    /images/{image_id}/metadata - Annotation state only
    - POST   /images/{image_id}/reanalyze - Re-run annotation (202)
    - DELETE /images/{image_id}          - Delete image, record and files
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile, status

from image_gallery.api.dependencies import (
    get_current_user_id,
    get_image_annotation_query_handler,
    get_image_delete_use_case,
    get_image_reanalysis_use_case,
    get_image_upload_use_case,
    get_search_images_query_handler,
)
from image_gallery.api.schemas.common import ErrorResponse
from image_gallery.api.schemas.images import (
    AnnotationResponse,
    BatchDeleteRequest,
    BatchDeleteResponse,
    ImageListResponse,
    ImageResponse,
    ReanalyzeResponse,
    UploadedImageResponse,
    UploadImagesResponse,
)
from image_gallery.application.queries.get_image_annotation import (
    GetImageAnnotationQuery,
    GetImageAnnotationQueryHandler,
)
from image_gallery.application.queries.search_images import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ImagePageResult,
    ListImagesQuery,
    SearchImagesQuery,
    SearchImagesQueryHandler,
)
from image_gallery.application.services.image_delete_use_case import (
    ImageDeleteUseCase,
)
from image_gallery.application.services.image_reanalysis_use_case import (
    ImageReanalysisUseCase,
)
from image_gallery.application.services.image_upload_use_case import (
    ImageUploadUseCase,
    UploadedImageFile,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["images"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    },
)


@router.post(
    "/uploads",
    status_code=status.HTTP_201_CREATED,
    response_model=UploadImagesResponse,
    summary="Upload images for annotation",
    responses={
        400: {"model": ErrorResponse, "description": "No files or too many files"},
        415: {"model": ErrorResponse, "description": "File is not a supported image"},
    },
)
async def upload_images(
    files: list[UploadFile] = File(..., description="Images to upload (max 10)"),
    user_id: str = Depends(get_current_user_id),
    use_case: ImageUploadUseCase = Depends(get_image_upload_use_case),
) -> UploadImagesResponse:
    """
    Store images and schedule their annotation.

    Every image starts with annotation status "pending".
    """
    uploads = [
        UploadedImageFile(
            filename=file.filename or "",
            content_type=file.content_type or "",
            data=await file.read(),
        )
        for file in files
    ]

    results = await use_case.execute(user_id, uploads)
    return UploadImagesResponse(
        uploaded=[
            UploadedImageResponse(
                image_id=result.image_id,
                filename=result.filename,
                status=result.status,
                queued=result.queued,
                uploaded_at=result.uploaded_at,
            )
            for result in results
        ]
    )


def to_list_response(result: ImagePageResult) -> ImageListResponse:
    return ImageListResponse.model_validate(result.model_dump())


@router.get(
    "",
    response_model=ImageListResponse,
    summary="List own images",
)
async def list_images(
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
    user_id: str = Depends(get_current_user_id),
    handler: SearchImagesQueryHandler = Depends(get_search_images_query_handler),
) -> ImageListResponse:
    result = await handler.list_images(
        ListImagesQuery(owner_id=user_id, page=page, limit=limit)
    )
    return to_list_response(result)


@router.get(
    "/search",
    response_model=ImageListResponse,
    summary="Search annotated images",
    description=(
        "Matches only images whose annotation is done. query matches the "
        "description or a tag, color a dominant color, similarToId images "
        "sharing a tag with that image. At least one criterion is required."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "No search criterion"},
        404: {"model": ErrorResponse, "description": "similarToId image not found"},
    },
)
async def search_images(
    query: Optional[str] = Query(None, description="Keyword or tag"),
    color: Optional[str] = Query(None, description="Dominant color"),
    similar_to_id: Optional[str] = Query(
        None, alias="similarToId", description="Find images with shared tags"
    ),
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
    user_id: str = Depends(get_current_user_id),
    handler: SearchImagesQueryHandler = Depends(get_search_images_query_handler),
) -> ImageListResponse:
    result = await handler.search(
        SearchImagesQuery(
            owner_id=user_id,
            page=page,
            limit=limit,
            query=query,
            color=color,
            similar_to_id=similar_to_id,
        )
    )
    return to_list_response(result)


@router.delete(
    "",
    response_model=BatchDeleteResponse,
    summary="Delete several images",
    responses={
        400: {"model": ErrorResponse, "description": "Empty id list"},
        404: {"model": ErrorResponse, "description": "No matching images"},
    },
)
async def delete_images(
    body: BatchDeleteRequest,
    user_id: str = Depends(get_current_user_id),
    use_case: ImageDeleteUseCase = Depends(get_image_delete_use_case),
) -> BatchDeleteResponse:
    """Images of other users and unknown ids are skipped."""
    deleted = await use_case.execute_many(user_id, body.ids)
    return BatchDeleteResponse(deleted_count=deleted)


@router.get(
    "/{image_id}",
    response_model=ImageResponse,
    summary="Get image with annotation",
    responses={404: {"model": ErrorResponse, "description": "Image not found"}},
)
async def get_image(
    image_id: str = Path(..., description="Image id from upload"),
    user_id: str = Depends(get_current_user_id),
    handler: GetImageAnnotationQueryHandler = Depends(get_image_annotation_query_handler),
) -> ImageResponse:
    result = await handler.get_image(
        GetImageAnnotationQuery(image_id=image_id, owner_id=user_id)
    )
    return ImageResponse.model_validate(result.model_dump())


@router.get(
    "/{image_id}/metadata",
    response_model=AnnotationResponse,
    summary="Get annotation state",
    description=(
        "Returns status pending | processing | done | failed. "
        "description, tags and colors are set only when status is done."
    ),
    responses={404: {"model": ErrorResponse, "description": "Image not found"}},
)
async def get_image_metadata(
    image_id: str = Path(..., description="Image id from upload"),
    user_id: str = Depends(get_current_user_id),
    handler: GetImageAnnotationQueryHandler = Depends(get_image_annotation_query_handler),
) -> AnnotationResponse:
    result = await handler.get_annotation(
        GetImageAnnotationQuery(image_id=image_id, owner_id=user_id)
    )
    return AnnotationResponse.model_validate(result.model_dump())


@router.post(
    "/{image_id}/reanalyze",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ReanalyzeResponse,
    summary="Re-run annotation",
    responses={
        404: {"model": ErrorResponse, "description": "Image not found"},
        409: {"model": ErrorResponse, "description": "Annotation in progress"},
    },
)
async def reanalyze_image(
    image_id: str = Path(..., description="Image id from upload"),
    user_id: str = Depends(get_current_user_id),
    use_case: ImageReanalysisUseCase = Depends(get_image_reanalysis_use_case),
) -> ReanalyzeResponse:
    result = await use_case.execute(user_id, image_id)
    return ReanalyzeResponse(
        image_id=result.image_id, status=result.status, queued=result.queued
    )


@router.delete(
    "/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete image",
    responses={404: {"model": ErrorResponse, "description": "Image not found"}},
)
async def delete_image(
    image_id: str = Path(..., description="Image id from upload"),
    user_id: str = Depends(get_current_user_id),
    use_case: ImageDeleteUseCase = Depends(get_image_delete_use_case),
) -> None:
    await use_case.execute(user_id, image_id)
