"""
Image Entity.

An uploaded image: who owns it and where its original and thumbnail live in
storage. Immutable after upload except for deletion, which cascades to the
image's AnnotationRecord and stored files.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from image_gallery.domain.annotation.entities.annotation_record import utc_now
from image_gallery.domain.shared.exceptions import InvalidInputError


@dataclass(frozen=True)
class Image:
    """
    Uploaded image owned by one user.

    Attributes:
        owner_id: Id of the uploading user
        filename: Original filename as uploaded
        original_location: Storage location of the original bytes
        thumbnail_location: Storage location of the thumbnail (None if not generated)
        content_type: MIME type reported at upload
        id: Opaque image id (UUID string)
        uploaded_at: Upload time (UTC)
    """

    owner_id: str
    filename: str
    original_location: str
    thumbnail_location: Optional[str] = None
    content_type: str = "application/octet-stream"
    id: str = field(default_factory=lambda: str(uuid4()))
    uploaded_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.owner_id:
            raise InvalidInputError("owner_id cannot be empty", field_name="owner_id")
        if not self.filename:
            raise InvalidInputError("filename cannot be empty", field_name="filename")
        if not self.original_location:
            raise InvalidInputError(
                "original_location cannot be empty", field_name="original_location"
            )

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def storage_locations(self) -> list[str]:
        """All stored files belonging to this image (used by delete cascade)."""
        locations = [self.original_location]
        if self.thumbnail_location:
            locations.append(self.thumbnail_location)
        return locations

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "filename": self.filename,
            "original_location": self.original_location,
            "thumbnail_location": self.thumbnail_location,
            "content_type": self.content_type,
            "uploaded_at": self.uploaded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Image":
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            filename=data["filename"],
            original_location=data["original_location"],
            thumbnail_location=data.get("thumbnail_location"),
            content_type=data.get("content_type", "application/octet-stream"),
            uploaded_at=datetime.fromisoformat(data["uploaded_at"]),
        )
