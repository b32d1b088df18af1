"""
Pipeline Configuration

Tunables of the annotation pipeline: poller cadence and batch size, liveness
window, retry budget and backoff of the AI client, job deadline.

Business Context:
    - Poll every 30s, at most 5 records per tick: bounds the burst sent to the
      AI service after an outage
    - Retry 429s 3 times total with a fixed 10s backoff
    - A job failed by a transient error (5xx, network, deadline) is picked up
      again by the poller, at most JOB_RETRY_LIMIT times
    - A pending record older than the liveness window (3 poller intervals by
      default) is considered abandoned
    - A processing record older than PROCESSING_STALE_SECONDS was abandoned
      mid-job; the window is longer than the job deadline so a live job is
      never picked up

Design Principles:
    - Configuration as code with environment overrides (.env via python-dotenv)
    - Type-safe, immutable dataclass validated at construction
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv


# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 30.0
DEFAULT_POLL_BATCH_SIZE: Final[int] = 5
DEFAULT_LIVENESS_WINDOW_SECONDS: Final[float] = 90.0  # 3 poller intervals
DEFAULT_PROCESSING_STALE_SECONDS: Final[float] = 600.0
DEFAULT_SIGNED_URL_TTL_SECONDS: Final[int] = 300  # 5 minutes

DEFAULT_AI_MAX_ATTEMPTS: Final[int] = 3  # includes the first attempt
DEFAULT_AI_BACKOFF_SECONDS: Final[float] = 10.0
DEFAULT_AI_REQUEST_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_JOB_DEADLINE_SECONDS: Final[float] = 120.0
DEFAULT_JOB_RETRY_LIMIT: Final[int] = 3  # poller retries after a transient failure


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable configuration of one AnnotationPipeline instance.

    Attributes:
        poll_interval_seconds: Period of the reconciliation poller
        poll_batch_size: Max records resubmitted per poller tick
        liveness_window_seconds: Age after which a pending record is abandoned
        processing_stale_seconds: Age after which a processing record is abandoned
        signed_url_ttl_seconds: Lifetime of temporary access URLs given to the AI service
        ai_max_attempts: Total attempts on rate limiting (first call included)
        ai_backoff_seconds: Fixed wait between rate-limited attempts
        ai_request_timeout_seconds: Timeout of one HTTP call to the AI service
        job_deadline_seconds: Overall deadline of one job (all attempts included)
        job_retry_limit: Poller re-submissions of a job that failed transiently

    Examples:
        >>> config = PipelineConfig.default()
        >>> config.poll_batch_size
        5
        >>> PipelineConfig(poll_batch_size=0)
        Traceback (most recent call last):
        ValueError: poll_batch_size must be >= 1, got 0
    """

    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    poll_batch_size: int = DEFAULT_POLL_BATCH_SIZE
    liveness_window_seconds: float = DEFAULT_LIVENESS_WINDOW_SECONDS
    processing_stale_seconds: float = DEFAULT_PROCESSING_STALE_SECONDS
    signed_url_ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS
    ai_max_attempts: int = DEFAULT_AI_MAX_ATTEMPTS
    ai_backoff_seconds: float = DEFAULT_AI_BACKOFF_SECONDS
    ai_request_timeout_seconds: float = DEFAULT_AI_REQUEST_TIMEOUT_SECONDS
    job_deadline_seconds: float = DEFAULT_JOB_DEADLINE_SECONDS
    job_retry_limit: int = DEFAULT_JOB_RETRY_LIMIT

    def __post_init__(self) -> None:
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be > 0, got {self.poll_interval_seconds}"
            )
        if self.poll_batch_size < 1:
            raise ValueError(f"poll_batch_size must be >= 1, got {self.poll_batch_size}")
        if self.liveness_window_seconds < 0:
            raise ValueError(
                f"liveness_window_seconds must be >= 0, got {self.liveness_window_seconds}"
            )
        if self.signed_url_ttl_seconds < 1:
            raise ValueError(
                f"signed_url_ttl_seconds must be >= 1, got {self.signed_url_ttl_seconds}"
            )
        if self.ai_max_attempts < 1:
            raise ValueError(f"ai_max_attempts must be >= 1, got {self.ai_max_attempts}")
        if self.ai_backoff_seconds < 0:
            raise ValueError(
                f"ai_backoff_seconds must be >= 0, got {self.ai_backoff_seconds}"
            )
        if self.job_deadline_seconds <= 0:
            raise ValueError(
                f"job_deadline_seconds must be > 0, got {self.job_deadline_seconds}"
            )
        if self.worst_case_job_seconds >= self.job_deadline_seconds:
            raise ValueError(
                "job_deadline_seconds must exceed all AI attempts and backoffs "
                f"({self.job_deadline_seconds} <= {self.worst_case_job_seconds})"
            )
        if self.job_retry_limit < 0:
            raise ValueError(f"job_retry_limit must be >= 0, got {self.job_retry_limit}")
        if self.processing_stale_seconds <= self.job_deadline_seconds:
            raise ValueError(
                "processing_stale_seconds must be longer than job_deadline_seconds "
                f"({self.processing_stale_seconds} <= {self.job_deadline_seconds})"
            )

    @property
    def worst_case_job_seconds(self) -> float:
        """
        Longest time one job can keep the AI service busy.

        The job deadline cancels the awaiting coroutine but not an HTTP call
        already running in its worker thread, so the deadline must be longer
        than this for two jobs never to reach the AI service at once.
        """
        return (
            self.ai_request_timeout_seconds * self.ai_max_attempts
            + self.ai_backoff_seconds * (self.ai_max_attempts - 1)
        )

    @property
    def liveness_window(self) -> timedelta:
        return timedelta(seconds=self.liveness_window_seconds)

    @property
    def processing_stale_after(self) -> timedelta:
        return timedelta(seconds=self.processing_stale_seconds)

    @classmethod
    def default(cls) -> "PipelineConfig":
        """Configuration with all documented defaults."""
        return cls()

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """
        Build configuration from environment variables (.env supported).

        Environment:
            POLL_INTERVAL_SECONDS, POLL_BATCH_SIZE, LIVENESS_WINDOW_SECONDS,
            PROCESSING_STALE_SECONDS, SIGNED_URL_TTL_SECONDS, AI_MAX_ATTEMPTS,
            AI_BACKOFF_SECONDS, AI_REQUEST_TIMEOUT_SECONDS, JOB_DEADLINE_SECONDS,
            JOB_RETRY_LIMIT

        Raises:
            ValueError: If a value cannot be parsed or fails validation
        """
        load_dotenv()
        return cls(
            poll_interval_seconds=_env_float(
                "POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            poll_batch_size=_env_int("POLL_BATCH_SIZE", DEFAULT_POLL_BATCH_SIZE),
            liveness_window_seconds=_env_float(
                "LIVENESS_WINDOW_SECONDS", DEFAULT_LIVENESS_WINDOW_SECONDS
            ),
            processing_stale_seconds=_env_float(
                "PROCESSING_STALE_SECONDS", DEFAULT_PROCESSING_STALE_SECONDS
            ),
            signed_url_ttl_seconds=_env_int(
                "SIGNED_URL_TTL_SECONDS", DEFAULT_SIGNED_URL_TTL_SECONDS
            ),
            ai_max_attempts=_env_int("AI_MAX_ATTEMPTS", DEFAULT_AI_MAX_ATTEMPTS),
            ai_backoff_seconds=_env_float(
                "AI_BACKOFF_SECONDS", DEFAULT_AI_BACKOFF_SECONDS
            ),
            ai_request_timeout_seconds=_env_float(
                "AI_REQUEST_TIMEOUT_SECONDS", DEFAULT_AI_REQUEST_TIMEOUT_SECONDS
            ),
            job_deadline_seconds=_env_float(
                "JOB_DEADLINE_SECONDS", DEFAULT_JOB_DEADLINE_SECONDS
            ),
            job_retry_limit=_env_int("JOB_RETRY_LIMIT", DEFAULT_JOB_RETRY_LIMIT),
        )
