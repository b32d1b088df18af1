"""
Application Layer Ports (Interfaces)

Contains Protocol definitions for dependency inversion.
Infrastructure Layer implements these protocols.
"""

from image_gallery.application.ports.image_storage import ImageStorageProtocol
from image_gallery.application.ports.thumbnail_generator import (
    ThumbnailGeneratorProtocol,
)
from image_gallery.application.ports.token_verifier import TokenVerifierProtocol

__all__ = [
    "ImageStorageProtocol",
    "ThumbnailGeneratorProtocol",
    "TokenVerifierProtocol",
]
