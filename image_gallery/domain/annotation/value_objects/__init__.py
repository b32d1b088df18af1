"""Annotation value objects (immutable)."""

from .annotation import Annotation

__all__ = ["Annotation"]
