"""
Application Queries (CQRS read side)
"""

from .get_image_annotation import (
    AnnotationStatusResult,
    GetImageAnnotationQuery,
    GetImageAnnotationQueryHandler,
    ImageDetailsResult,
)

__all__ = [
    "AnnotationStatusResult",
    "GetImageAnnotationQuery",
    "GetImageAnnotationQueryHandler",
    "ImageDetailsResult",
]
