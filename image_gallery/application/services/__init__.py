"""
Application Services

Pipeline components and use cases.
"""

from .annotation_orchestrator import AnnotationOrchestrator
from .annotation_pipeline import AnnotationPipeline
from .image_delete_use_case import ImageDeleteUseCase
from .image_reanalysis_use_case import ImageReanalysisUseCase, ReanalysisResult
from .image_upload_use_case import (
    ImageUploadUseCase,
    UploadedImageFile,
    UploadedImageResult,
)
from .reconciliation_poller import ReconciliationPoller, ReconciliationReport

__all__ = [
    "AnnotationOrchestrator",
    "AnnotationPipeline",
    "ImageDeleteUseCase",
    "ImageReanalysisUseCase",
    "ReanalysisResult",
    "ImageUploadUseCase",
    "UploadedImageFile",
    "UploadedImageResult",
    "ReconciliationPoller",
    "ReconciliationReport",
]
