"""Binary image storage."""

from .local_image_storage import LocalImageStorage

__all__ = ["LocalImageStorage"]
