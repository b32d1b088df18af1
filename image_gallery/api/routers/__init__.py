"""
API Routers Package

Available Routers:
    - images: upload, read annotation state, re-analyze, delete
    - files: signed downloads of stored images
"""

from .files import router as files_router
from .images import router as images_router

__all__ = ["files_router", "images_router"]
