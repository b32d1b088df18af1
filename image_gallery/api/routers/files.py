"""
API Router for Stored Files

Serves stored originals and thumbnails behind HMAC-signed, expiring URLs.
These URLs are the temporary access references handed to the AI service,
so this endpoint takes no bearer token: the signature is the credential.

Contains:
    - GET /files/{location}?expires=&signature= - Stream a stored file
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from fastapi.responses import FileResponse

from image_gallery.api.container import ServiceContainer
from image_gallery.api.dependencies import get_container
from image_gallery.api.schemas.common import ErrorResponse
from image_gallery.domain.shared.exceptions import (
    InvalidAccessSignatureError,
    StorageError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.get(
    "/{location:path}",
    response_class=FileResponse,
    summary="Download a stored image through a signed URL",
    responses={
        403: {"model": ErrorResponse, "description": "Expired or invalid signature"},
        404: {"model": ErrorResponse, "description": "File not found"},
    },
)
async def download_file(
    location: str = Path(..., description="Storage location"),
    expires: int = Query(..., description="Expiry as unix timestamp"),
    signature: str = Query(..., description="HMAC-SHA256 signature"),
    container: ServiceContainer = Depends(get_container),
) -> FileResponse:
    verify_access = getattr(container.storage, "verify_access", None)
    if verify_access is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": "FILE_NOT_FOUND",
                "message": "Storage backend does not serve files",
                "details": {"location": location},
            },
        )

    try:
        path = verify_access(location, expires, signature)
    except InvalidAccessSignatureError:
        raise
    except StorageError as e:
        logger.warning(f"Signed download of missing file {location}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": "FILE_NOT_FOUND",
                "message": str(e),
                "details": {"location": location},
            },
        )

    return FileResponse(path)
