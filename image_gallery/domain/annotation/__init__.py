"""
Annotation Subdomain

Exports:
    - Annotation: AI output value object
    - AnnotationRecord, AnnotationStatus: per-image processing state
    - Image: uploaded image entity
    - ProcessingStateStoreProtocol, StuckAnnotation: state store contract
    - ImageRepositoryProtocol: image persistence contract
    - AnnotationClientProtocol: AI vision service contract
"""

from .entities import AnnotationRecord, AnnotationStatus, Image
from .repositories import (
    ImageRepositoryProtocol,
    ProcessingStateStoreProtocol,
    StuckAnnotation,
)
from .services import AnnotationClientProtocol
from .value_objects import Annotation

__all__ = [
    "Annotation",
    "AnnotationRecord",
    "AnnotationStatus",
    "Image",
    "ImageRepositoryProtocol",
    "ProcessingStateStoreProtocol",
    "StuckAnnotation",
    "AnnotationClientProtocol",
]
