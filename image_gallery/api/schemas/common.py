"""
Common API Schemas

Shared Pydantic models used across all API routers.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error response model for all API errors.

    Attributes:
        code: Machine-readable error code (e.g., "IMAGE_NOT_FOUND", "UNSUPPORTED_IMAGE")
        message: Human-readable error message
        details: Optional additional error details
    """

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional error context"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "code": "IMAGE_NOT_FOUND",
                "message": "ImageNotFoundError: Image 3fa85f64-... not found",
                "details": {"exception_type": "ImageNotFoundError"},
            }
        }
    }
