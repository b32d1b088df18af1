"""
Image API Schemas

HTTP representations of the Application Layer DTOs.
"""

from typing import Optional

from pydantic import BaseModel, Field


class UploadedImageResponse(BaseModel):
    image_id: str = Field(description="Image id (UUID as string)")
    filename: str
    status: str = Field(description="Annotation status (pending right after upload)")
    queued: bool = Field(description="True if annotation was scheduled immediately")
    uploaded_at: str


class UploadImagesResponse(BaseModel):
    """
    Response of POST /api/images/uploads.

    Annotation runs in the background: poll GET /api/images/{id}/metadata
    until status is "done" or "failed".
    """

    uploaded: list[UploadedImageResponse]
    message: str = "Images uploaded, annotation scheduled"


class AnnotationResponse(BaseModel):
    """
    Annotation state of one image.

    description, tags and colors are null unless status == "done".
    """

    image_id: str
    status: str = Field(description="pending | processing | done | failed")
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    colors: Optional[list[str]] = None
    updated_at: str

    model_config = {
        "json_schema_extra": {
            "example": {
                "image_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                "status": "done",
                "description": "A red bicycle leaning on a brick wall",
                "tags": ["bicycle", "wall", "street"],
                "colors": ["red", "brown"],
                "updated_at": "2026-10-18T10:30:00+00:00",
            }
        }
    }


class ImageResponse(BaseModel):
    image_id: str
    filename: str
    content_type: str
    uploaded_at: str
    original_url: Optional[str] = Field(
        default=None, description="Signed, expiring URL of the original"
    )
    thumbnail_url: Optional[str] = Field(
        default=None, description="Signed, expiring URL of the thumbnail"
    )
    annotation: AnnotationResponse


class ReanalyzeResponse(BaseModel):
    image_id: str
    status: str
    queued: bool
    message: str = "Re-analysis scheduled"


class ImageListResponse(BaseModel):
    """Response of GET /api/images and GET /api/images/search."""

    page: int
    limit: int
    total: int = Field(description="Matching images across all pages")
    images: list[ImageResponse]


class BatchDeleteRequest(BaseModel):
    ids: list[str] = Field(description="Ids of the images to delete")


class BatchDeleteResponse(BaseModel):
    message: str = "Images deleted"
    deleted_count: int
