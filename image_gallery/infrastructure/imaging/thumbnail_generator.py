"""
Thumbnail Generator

Validates uploaded bytes as an image and renders a fixed-size thumbnail
with Pillow.
"""

import io
import logging

from PIL import Image as PILImage
from PIL import ImageOps, UnidentifiedImageError

from image_gallery.domain.shared.exceptions import UnsupportedImageError

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (300, 300)


class PillowThumbnailGenerator:
    """
    Renders thumbnails cropped to cover THUMBNAIL_SIZE, in the source format.

    Examples:
        >>> generator = PillowThumbnailGenerator()
        >>> thumb = generator.generate(jpeg_bytes, "cat.jpg")
    """

    def __init__(self, size: tuple[int, int] = THUMBNAIL_SIZE) -> None:
        self.size = size

    def generate(self, data: bytes, filename: str = "") -> bytes:
        """
        Decode data and return encoded thumbnail bytes.

        Raises:
            UnsupportedImageError: If data is not a decodable image
        """
        try:
            with PILImage.open(io.BytesIO(data)) as source:
                image_format = source.format or "PNG"
                source.load()
                thumbnail = ImageOps.fit(source, self.size)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise UnsupportedImageError(
                f"File is not a valid image: {e}", filename=filename
            ) from e

        if image_format == "JPEG" and thumbnail.mode not in ("RGB", "L"):
            thumbnail = thumbnail.convert("RGB")

        buffer = io.BytesIO()
        try:
            thumbnail.save(buffer, format=image_format)
        except (KeyError, OSError):
            # Read-only Pillow format
            buffer = io.BytesIO()
            thumbnail.save(buffer, format="PNG")
        logger.debug(
            f"Thumbnail generated for {filename or 'upload'} "
            f"({image_format}, {len(buffer.getvalue())} bytes)"
        )
        return buffer.getvalue()
