"""
Local Image Storage

Stores uploaded images on the local filesystem and grants temporary read
access through HMAC-signed, expiring URLs served by GET /api/files/{location}.

Responsibility:
    - Store originals and thumbnails per owner
    - Mint and verify temporary access URLs (the image reference handed to
      the AI service)
    - Delete stored files (image delete cascade)
    - Implements ImageStorageProtocol from Application Layer

Storage Structure:
    Base directory: ./storage (from env: STORAGE_DIR)

        {base_dir}/{owner_id}/originals/{name}
        {base_dir}/{owner_id}/thumbnails/{name}

    A location is the path relative to base_dir, e.g.
    "user-1/originals/3fa85f64.jpg".

Signed URL format:
    {PUBLIC_BASE_URL}/api/files/{location}?expires={unix_ts}&signature={hex}
    signature = HMAC-SHA256(SIGNING_SECRET, "{location}:{expires}")
"""

import hashlib
import hmac
import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote, urlencode

from image_gallery.domain.shared.exceptions import (
    InvalidAccessSignatureError,
    StorageError,
)

logger = logging.getLogger(__name__)

ORIGINALS_DIR = "originals"
THUMBNAILS_DIR = "thumbnails"


class LocalImageStorage:
    """
    Filesystem storage with signed temporary access.

    Examples:
        >>> storage = LocalImageStorage(base_dir="/tmp/gallery", signing_secret="s3cret")
        >>> location = await storage.store("user-1", "img-1.jpg", data)
        >>> location
        'user-1/originals/img-1.jpg'
        >>> url = await storage.resolve_temporary_access(location, ttl_seconds=300)
    """

    def __init__(
        self,
        base_dir: Optional[str] = None,
        public_base_url: Optional[str] = None,
        signing_secret: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            base_dir: Root directory (default from env: STORAGE_DIR or ./storage)
            public_base_url: Externally reachable API origin used in signed URLs
                (default from env: PUBLIC_BASE_URL or http://localhost:8000)
            signing_secret: HMAC key (default from env: SIGNING_SECRET)
            clock: Unix time source (injectable for tests)

        Raises:
            ValueError: If no signing secret is configured
        """
        self.base_dir = Path(base_dir or os.getenv("STORAGE_DIR", "./storage")).resolve()
        self.public_base_url = (
            public_base_url or os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
        ).rstrip("/")

        secret = signing_secret or os.getenv("SIGNING_SECRET")
        if not secret:
            raise ValueError("SIGNING_SECRET must be configured for signed image URLs")
        self._secret = secret.encode()
        self._clock = clock

        self.base_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _location(self, owner_id: str, folder: str, name: str) -> str:
        for part, label in ((owner_id, "owner_id"), (name, "name")):
            if not part or "/" in part or "\\" in part or part in (".", ".."):
                raise StorageError(f"Invalid {label} for storage: {part!r}")
        return f"{owner_id}/{folder}/{name}"

    def get_path(self, location: str) -> Path:
        """
        Resolve a location to an absolute path inside base_dir.

        Raises:
            StorageError: If location escapes base_dir
        """
        path = (self.base_dir / location).resolve()
        if self.base_dir not in path.parents:
            raise StorageError("Location outside of storage root", location=location)
        return path

    def exists(self, location: str) -> bool:
        return self.get_path(location).is_file()

    # ------------------------------------------------------------------
    # Write / delete
    # ------------------------------------------------------------------

    def _write(self, location: str, data: bytes) -> str:
        path = self.get_path(location)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write file: {e}", location=location) from e

        logger.info(f"Stored {len(data)} bytes at {location}")
        return location

    async def store(self, owner_id: str, name: str, data: bytes) -> str:
        return self._write(self._location(owner_id, ORIGINALS_DIR, name), data)

    async def store_thumbnail(self, owner_id: str, name: str, data: bytes) -> str:
        return self._write(self._location(owner_id, THUMBNAILS_DIR, name), data)

    async def delete(self, location: str) -> bool:
        path = self.get_path(location)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"Nothing to delete at {location}")
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}", location=location) from e

        logger.info(f"Deleted {location}")
        return True

    # ------------------------------------------------------------------
    # Temporary access
    # ------------------------------------------------------------------

    def _sign(self, location: str, expires: int) -> str:
        message = f"{location}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def resolve_temporary_access(self, location: str, ttl_seconds: int) -> str:
        if not self.exists(location):
            raise StorageError("Stored file not found", location=location)

        expires = int(self._clock()) + int(ttl_seconds)
        query = urlencode({"expires": expires, "signature": self._sign(location, expires)})
        return f"{self.public_base_url}/api/files/{quote(location)}?{query}"

    def verify_access(self, location: str, expires: int, signature: str) -> Path:
        """
        Check a signed URL and return the file it grants access to.

        Raises:
            InvalidAccessSignatureError: If expired or the signature does not match
            StorageError: If the file no longer exists
        """
        if expires < int(self._clock()):
            raise InvalidAccessSignatureError("Access URL expired", location=location)
        if not hmac.compare_digest(self._sign(location, expires), signature):
            raise InvalidAccessSignatureError(
                "Access URL signature mismatch", location=location
            )

        path = self.get_path(location)
        if not path.is_file():
            raise StorageError("Stored file not found", location=location)
        return path
