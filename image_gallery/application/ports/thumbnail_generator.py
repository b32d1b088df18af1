"""Thumbnail Generator Port"""

from typing import Protocol


class ThumbnailGeneratorProtocol(Protocol):
    def generate(self, data: bytes, filename: str = "") -> bytes:
        """
        Validate data as an image and return thumbnail bytes.

        Raises:
            UnsupportedImageError: If data cannot be decoded as an image
        """
        ...
