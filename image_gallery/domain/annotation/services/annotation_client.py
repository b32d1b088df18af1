"""
Protocol for the annotation client.

This module defines the interface for AI vision annotation services.
Infrastructure layer provides the concrete implementation calling an
OpenAI-compatible chat-completions endpoint.
"""

from typing import Protocol

from ..value_objects.annotation import Annotation


class AnnotationClientProtocol(Protocol):
    """
    Protocol for the external AI vision annotation service.

    Implementations must:
    - Reject an empty image reference with InvalidInputError (no service call)
    - Retry rate-limited calls with a fixed backoff up to a bounded attempt budget
    - Raise QuotaExceededError once the budget is exhausted
    - Propagate every other service error immediately
    - Degrade unparseable AI output to Annotation.from_raw_text() instead of failing
    - Abort an in-flight backoff wait when shutdown() is called
    - Resume normal retries after start(), so a stopped pipeline can restart

    Example:
        >>> client = OpenAIVisionAnnotationClient(api_key="...")
        >>> annotation = await client.analyze("https://cdn.example.com/cat.jpg?sig=...")
        >>> annotation.tags
        ('cat', 'sofa')
    """

    async def analyze(self, image_reference: str) -> Annotation:
        """
        Annotate one image.

        Args:
            image_reference: URL the AI service can fetch the image from.

        Returns:
            Annotation with description, tags and colors.

        Raises:
            InvalidInputError: If image_reference is empty.
            QuotaExceededError: If rate limiting outlasted the retry budget.
            TransientServiceError: On network failure or 5xx.
            AnnotationServiceError: On any other service rejection.
            PipelineShutdownError: If a backoff wait was aborted by shutdown().
        """
        ...

    def start(self) -> None:
        """Accept work again after a shutdown() (backoff waits are no longer aborted)."""
        ...

    def shutdown(self) -> None:
        """Abort any in-flight backoff wait so the process can exit promptly."""
        ...
