"""Domain service interfaces."""

from .annotation_client import AnnotationClientProtocol

__all__ = ["AnnotationClientProtocol"]
