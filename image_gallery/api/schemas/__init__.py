"""
API Schemas Package

Contains shared Pydantic models for API Layer.
"""

from image_gallery.api.schemas.common import ErrorResponse
from image_gallery.api.schemas.images import (
    AnnotationResponse,
    ImageResponse,
    ReanalyzeResponse,
    UploadedImageResponse,
    UploadImagesResponse,
)

__all__ = [
    "ErrorResponse",
    "AnnotationResponse",
    "ImageResponse",
    "ReanalyzeResponse",
    "UploadedImageResponse",
    "UploadImagesResponse",
]
