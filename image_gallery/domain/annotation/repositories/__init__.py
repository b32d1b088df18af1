"""Repository interfaces (implemented in Infrastructure Layer)."""

from .annotation_state_store import ProcessingStateStoreProtocol, StuckAnnotation
from .image_repository import ImageRepositoryProtocol

__all__ = [
    "ProcessingStateStoreProtocol",
    "StuckAnnotation",
    "ImageRepositoryProtocol",
]
