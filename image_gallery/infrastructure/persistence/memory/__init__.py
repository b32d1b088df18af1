"""In-memory persistence (tests, local development)."""

from .annotation_state_store import InMemoryAnnotationStateStore
from .image_repository import InMemoryImageRepository

__all__ = ["InMemoryAnnotationStateStore", "InMemoryImageRepository"]
