"""
Image Storage Port

Binary storage is an external collaborator of the annotation pipeline. The
pipeline only needs to store uploaded bytes, mint a temporary access URL the
AI service can fetch, and delete stored files.
"""

from typing import Protocol


class ImageStorageProtocol(Protocol):
    """
    Protocol for binary image storage.

    Implementations: LocalImageStorage (filesystem + HMAC-signed URLs).
    """

    async def store(self, owner_id: str, name: str, data: bytes) -> str:
        """
        Store bytes for an owner.

        Returns:
            Opaque storage location

        Raises:
            StorageError: If the bytes cannot be written
        """
        ...

    async def store_thumbnail(self, owner_id: str, name: str, data: bytes) -> str:
        """Store thumbnail bytes next to the originals and return the location."""
        ...

    async def resolve_temporary_access(self, location: str, ttl_seconds: int) -> str:
        """
        Mint a URL granting read access to location for ttl_seconds.

        Raises:
            StorageError: If location does not exist
        """
        ...

    async def delete(self, location: str) -> bool:
        """Delete a stored file; return True if something was deleted."""
        ...
