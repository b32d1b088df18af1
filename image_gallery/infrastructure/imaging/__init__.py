"""Image decoding and thumbnail rendering (Pillow)."""

from .thumbnail_generator import PillowThumbnailGenerator

__all__ = ["PillowThumbnailGenerator"]
