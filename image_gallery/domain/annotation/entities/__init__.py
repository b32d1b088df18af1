"""Annotation entities (mutable, with identity)."""

from .annotation_record import AnnotationRecord, AnnotationStatus
from .image import Image

__all__ = ["AnnotationRecord", "AnnotationStatus", "Image"]
