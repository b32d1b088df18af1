"""
Domain Layer - Core Business Logic

Entities, value objects and interfaces of the annotation pipeline.
Framework-independent and highly testable.

Architecture:
    - Clean Architecture: Domain Layer is the center, no external dependencies
    - Dependency Inversion: Domain defines interfaces, Infrastructure implements

Subdomains:
    - annotation: images, annotation records, annotation client contract
    - shared: exceptions used by every layer
"""

from .annotation import (
    Annotation,
    AnnotationClientProtocol,
    AnnotationRecord,
    AnnotationStatus,
    Image,
    ImageRepositoryProtocol,
    ProcessingStateStoreProtocol,
    StuckAnnotation,
)
from .shared import DomainException

__all__ = [
    "Annotation",
    "AnnotationClientProtocol",
    "AnnotationRecord",
    "AnnotationStatus",
    "Image",
    "ImageRepositoryProtocol",
    "ProcessingStateStoreProtocol",
    "StuckAnnotation",
    "DomainException",
]
