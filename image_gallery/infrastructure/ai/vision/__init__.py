"""AI vision annotation clients."""

from .openai_annotation_client import OpenAIVisionAnnotationClient

__all__ = ["OpenAIVisionAnnotationClient"]
