"""
Domain Layer Exceptions

This module defines the exception hierarchy shared by every layer of the
annotation pipeline. All domain-specific exceptions inherit from DomainException.

Responsibility:
    - Base exception class for domain errors
    - Annotation service error taxonomy (retried vs. not retried)
    - Record/image lifecycle errors (invalid transitions, missing records)
    - Clear separation from framework exceptions (FastAPI, redis, requests)

Architecture Notes:
    - Part of Shared Domain (used across all subdomains)
    - API Layer maps these to HTTP status codes in one place (api/main.py)
    - Infrastructure adapters translate library errors into these types

Error Taxonomy (annotation service):
    InvalidInputError          - bad/missing image reference, never retried
    RateLimitedError           - HTTP 429, retried with fixed backoff
      QuotaExceededError       - quota exhausted / retries exhausted
    TransientServiceError      - network or 5xx, not retried by the client
      AnnotationTimeoutError   - overall job deadline exceeded
    MalformedResponseError     - unparseable AI output, degraded not failed
    PipelineShutdownError      - backoff wait aborted by shutdown
"""

from typing import Optional


class DomainException(Exception):
    """
    Base exception for all domain layer errors.

    This exception serves as the root of the domain exception hierarchy.
    All domain-specific exceptions inherit from this class to enable
    type-safe error handling in Application and API layers.

    Usage:
        - Catch this in Application Layer to handle all domain errors
        - API Layer converts to appropriate HTTP status codes

    Examples:
        >>> raise DomainException("Business rule violation")
    """

    def __init__(self, message: str) -> None:
        """
        Initialize domain exception with error message.

        Args:
            message: Human-readable error description
        """
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of the exception."""
        return f"{self.__class__.__name__}: {self.message}"

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return f"{self.__class__.__name__}(message={self.message!r})"


# ============================================================================
# INPUT / AUTH
# ============================================================================


class InvalidInputError(DomainException):
    """
    Raised when input to the pipeline is missing or malformed.

    This exception is raised when:
    - Image reference passed to the annotation client is empty
    - Image id or owner id is empty on submission

    Never retried: retrying the same bad input cannot succeed.

    Examples:
        >>> raise InvalidInputError("image_reference must be a non-empty string")
    """

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        """
        Initialize input validation error.

        Args:
            message: Error description
            field_name: Name of field that caused error (optional)
        """
        self.field_name = field_name
        super().__init__(message)


class UnauthorizedError(DomainException):
    """Raised when a bearer credential is missing or not recognized."""


# ============================================================================
# ANNOTATION SERVICE ERRORS
# ============================================================================


class AnnotationServiceError(DomainException):
    """
    Raised when the external AI vision service rejects a request.

    Base of the service error taxonomy. Used directly for failures that
    are neither rate limits nor transient (e.g. 401/403, 400).

    Attributes:
        status_code: HTTP status returned by the service (None for network errors)
        error_code: Service-specific error code from the response body (optional)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class RateLimitedError(AnnotationServiceError):
    """
    Raised when the AI service signals rate limiting (HTTP 429).

    Retried by the annotation client with a fixed backoff, up to the
    configured attempt budget.
    """


class QuotaExceededError(RateLimitedError):
    """
    Raised when the AI service quota is exhausted.

    Raised in two situations:
    - The service answers 429 with error code "insufficient_quota"
    - The annotation client exhausted its retry budget on rate limits

    Attributes:
        attempts: Number of attempts made before giving up (0 if unknown)

    Examples:
        >>> raise QuotaExceededError("Quota exceeded after 3 attempts", attempts=3)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = 429,
        error_code: Optional[str] = None,
        attempts: int = 0,
    ) -> None:
        self.attempts = attempts
        super().__init__(message, status_code=status_code, error_code=error_code)


class TransientServiceError(AnnotationServiceError):
    """
    Raised on network failures and 5xx responses.

    Not retried by the annotation client. The job is recorded as failed;
    a later re-submission retries the whole job from scratch.
    """


class AnnotationTimeoutError(TransientServiceError):
    """Raised when a job exceeds its overall deadline (all attempts included)."""


class MalformedResponseError(AnnotationServiceError):
    """
    Raised internally when the AI output cannot be parsed into an annotation.

    Never escapes the annotation client: the client degrades to a
    best-effort annotation built from the raw text instead.
    """


class PipelineShutdownError(DomainException):
    """
    Raised when an in-flight backoff wait is aborted because the pipeline
    is shutting down.

    The orchestrator does not record this as an annotation failure; the
    record stays in "processing" and is recovered by the reconciliation poller.
    """


# ============================================================================
# RECORD / IMAGE LIFECYCLE
# ============================================================================


class InvalidStatusTransitionError(DomainException):
    """
    Raised when an AnnotationRecord status change violates the state machine.

    Examples:
        >>> raise InvalidStatusTransitionError("done", "processing")
    """

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot transition annotation status from '{current}' to '{requested}'"
        )


class AnnotationRecordNotFoundError(DomainException):
    """Raised when no AnnotationRecord exists for an image id."""

    def __init__(self, image_id: str) -> None:
        self.image_id = image_id
        super().__init__(f"Annotation record for image {image_id} not found")


class ImageNotFoundError(DomainException):
    """Raised when an image does not exist or is not owned by the caller."""

    def __init__(self, image_id: str) -> None:
        self.image_id = image_id
        super().__init__(f"Image {image_id} not found")


# ============================================================================
# STORAGE
# ============================================================================


class StorageError(DomainException):
    """
    Raised when the storage collaborator cannot store, resolve or delete a file.

    Attributes:
        location: Storage location involved in the failure (optional)
    """

    def __init__(self, message: str, location: Optional[str] = None) -> None:
        self.location = location
        super().__init__(message)


class InvalidAccessSignatureError(StorageError):
    """Raised when a temporary access URL is expired or its signature is wrong."""


class UnsupportedImageError(DomainException):
    """
    Raised when an uploaded file is not an acceptable image.

    This exception is raised when:
    - Content type is not an image type
    - File exceeds the maximum upload size
    - File bytes cannot be decoded as an image

    Attributes:
        filename: Original filename of the rejected upload (optional)
    """

    def __init__(self, message: str, filename: Optional[str] = None) -> None:
        self.filename = filename
        super().__init__(message)
