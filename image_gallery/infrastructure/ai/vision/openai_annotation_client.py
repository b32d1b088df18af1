"""
OpenAI Vision Annotation Client.

Concrete implementation of AnnotationClientProtocol calling an
OpenAI-compatible chat-completions endpoint with a vision message
(prompt text + image URL).

Key features:
- Blocking HTTP (requests) runs in a worker thread, the event loop never blocks
- Rate-limited calls (HTTP 429) retried with a fixed backoff, bounded attempts
- Backoff wait aborted by shutdown()
- Unparseable model output degraded to a best-effort annotation

Error mapping:
    429 insufficient_quota     -> QuotaExceededError (retried)
    429                        -> RateLimitedError (retried)
    5xx, timeout, connection   -> TransientServiceError
    401/403, other 4xx         -> AnnotationServiceError
"""

import asyncio
import json
import logging
import os
import re
from typing import Any, Awaitable, Callable, Optional

import requests

from image_gallery.application.pipeline_config import (
    DEFAULT_AI_BACKOFF_SECONDS,
    DEFAULT_AI_MAX_ATTEMPTS,
    DEFAULT_AI_REQUEST_TIMEOUT_SECONDS,
)
from image_gallery.domain.annotation.value_objects.annotation import Annotation
from image_gallery.domain.shared.exceptions import (
    AnnotationServiceError,
    InvalidInputError,
    MalformedResponseError,
    PipelineShutdownError,
    QuotaExceededError,
    RateLimitedError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]

ANNOTATION_PROMPT = (
    "Analyze this image and return only a JSON object with:\n"
    "- description: short caption of the image\n"
    "- tags: array of relevant keywords\n"
    "- colors: array of dominant colors"
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class OpenAIVisionAnnotationClient:
    """
    AI vision annotation client with bounded retry on rate limiting.

    Example:
        >>> client = OpenAIVisionAnnotationClient(api_key="sk-...")
        >>> annotation = await client.analyze("https://host/api/files/u1/originals/a.jpg?...")
        >>> annotation.description
        'A black cat sleeping on a sofa'

        >>> # Deterministic tests: inject the backoff sleep
        >>> sleeps = []
        >>> async def fake_sleep(seconds):
        ...     sleeps.append(seconds)
        >>> client = OpenAIVisionAnnotationClient(api_key="test", sleep=fake_sleep)
    """

    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    INSUFFICIENT_QUOTA = "insufficient_quota"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        max_attempts: int = DEFAULT_AI_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_AI_BACKOFF_SECONDS,
        request_timeout: float = DEFAULT_AI_REQUEST_TIMEOUT_SECONDS,
        sleep: Optional[SleepFunc] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Args:
            api_key: Bearer key (default from env: OPENAI_API_KEY)
            model: Vision-capable model (default from env: AI_MODEL or gpt-4o-mini)
            base_url: API root (default from env: AI_API_BASE_URL or OpenAI)
            max_attempts: Total attempts on rate limiting, first call included
            backoff_seconds: Fixed wait between rate-limited attempts
            request_timeout: Timeout of one HTTP call in seconds
            sleep: Awaitable sleep used for backoff (default asyncio.sleep)
            session: requests.Session to reuse connections

        Raises:
            ValueError: If no API key is configured or max_attempts < 1
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY must be configured for the annotation client")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        self.model = model or os.getenv("AI_MODEL", self.DEFAULT_MODEL)
        self.base_url = (
            base_url or os.getenv("AI_API_BASE_URL", self.DEFAULT_BASE_URL)
        ).rstrip("/")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.request_timeout = request_timeout

        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._session = session or requests.Session()
        self._shutdown_event = asyncio.Event()

        logger.info(
            f"OpenAIVisionAnnotationClient initialized: model={self.model}, "
            f"max_attempts={self.max_attempts}, backoff={self.backoff_seconds}s"
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_event.is_set()

    def start(self) -> None:
        """Clear a previous shutdown() so rate-limited calls are retried again."""
        if self._shutdown_event.is_set():
            logger.info("Annotation client restarted")
        self._shutdown_event.clear()

    def shutdown(self) -> None:
        """Abort any in-flight backoff wait (PipelineShutdownError in analyze)."""
        if not self._shutdown_event.is_set():
            logger.info("Annotation client shutting down, aborting backoff waits")
        self._shutdown_event.set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def analyze(self, image_reference: str) -> Annotation:
        """
        Annotate one image, retrying rate-limited calls.

        Raises:
            InvalidInputError: If image_reference is empty
            QuotaExceededError: After max_attempts rate-limited attempts
            TransientServiceError: On network failure or 5xx
            AnnotationServiceError: On any other service rejection
            PipelineShutdownError: If shutdown() aborted a backoff wait
        """
        if not isinstance(image_reference, str) or not image_reference.strip():
            raise InvalidInputError(
                "image_reference must be a non-empty string", field_name="image_reference"
            )

        last_error: Optional[RateLimitedError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                content = await self._call_service(image_reference)
            except RateLimitedError as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                logger.warning(
                    f"AI service rate limited (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {self.backoff_seconds}s..."
                )
                await self._backoff()
                continue

            return self.parse_annotation(content)

        logger.error(f"AI service still rate limited after {self.max_attempts} attempts")
        raise QuotaExceededError(
            f"AI service rate limited after {self.max_attempts} attempts",
            status_code=last_error.status_code if last_error else 429,
            error_code=last_error.error_code if last_error else None,
            attempts=self.max_attempts,
        ) from last_error

    # ------------------------------------------------------------------
    # Backoff
    # ------------------------------------------------------------------

    async def _backoff(self) -> None:
        if self._shutdown_event.is_set():
            raise PipelineShutdownError("Backoff aborted: pipeline is shutting down")

        sleep_task = asyncio.ensure_future(self._sleep(self.backoff_seconds))
        shutdown_task = asyncio.ensure_future(self._shutdown_event.wait())
        try:
            await asyncio.wait(
                {sleep_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (sleep_task, shutdown_task):
                if not task.done():
                    task.cancel()

        if self._shutdown_event.is_set():
            raise PipelineShutdownError("Backoff aborted: pipeline is shutting down")

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _build_payload(self, image_reference: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": ANNOTATION_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_reference}},
                    ],
                }
            ],
            "max_tokens": 500,
        }

    async def _call_service(self, image_reference: str) -> str:
        """One attempt: POST in a worker thread, return the raw message content."""
        payload = self._build_payload(image_reference)
        response = await asyncio.to_thread(self._post, payload)
        self._raise_for_status(response)
        return self._extract_content(response)

    def _post(self, payload: dict[str, Any]) -> requests.Response:
        headers = {
            "Content-type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            return self._session.post(
                self.endpoint, headers=headers, json=payload, timeout=self.request_timeout
            )
        except requests.exceptions.Timeout as e:
            raise TransientServiceError(
                f"AI service timed out after {self.request_timeout}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransientServiceError(f"AI service unreachable: {e}") from e

    @staticmethod
    def _error_details(response: requests.Response) -> tuple[Optional[str], str]:
        try:
            body = response.json()
        except ValueError:
            return None, response.text[:200]

        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("code") or error.get("type"), str(error.get("message", ""))
        return None, response.text[:200]

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return

        error_code, detail = self._error_details(response)
        logger.error(f"AI service error: {status} - {detail}")

        if status == 429:
            if error_code == self.INSUFFICIENT_QUOTA:
                raise QuotaExceededError(
                    f"AI service quota exceeded: {detail}",
                    status_code=status,
                    error_code=error_code,
                )
            raise RateLimitedError(
                f"AI service rate limited: {detail}", status_code=status, error_code=error_code
            )
        if status >= 500:
            raise TransientServiceError(
                f"AI service error {status}: {detail}", status_code=status, error_code=error_code
            )
        raise AnnotationServiceError(
            f"AI service rejected request {status}: {detail}",
            status_code=status,
            error_code=error_code,
        )

    @staticmethod
    def _extract_content(response: requests.Response) -> str:
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("AI response has no message content, using raw body")
            return response.text

        if isinstance(content, list):
            return "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )
        return content if isinstance(content, str) else ""

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(raw_text: str) -> Annotation:
        text = raw_text.strip()
        fenced = _CODE_FENCE.match(text)
        if fenced:
            text = fenced.group(1)

        try:
            data = json.loads(text)
        except ValueError as e:
            raise MalformedResponseError(f"AI output is not JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("description"), str):
            raise MalformedResponseError("AI output has no string 'description'")

        def labels(value: Any) -> list[str]:
            if isinstance(value, str):
                return [value]
            if isinstance(value, (list, tuple)):
                return [str(item) for item in value if isinstance(item, (str, int, float))]
            return []

        return Annotation(
            description=data["description"],
            tags=labels(data.get("tags")),
            colors=labels(data.get("colors")),
        )

    @classmethod
    def parse_annotation(cls, raw_text: str) -> Annotation:
        """
        Parse model output; never fails.

        Examples:
            >>> OpenAIVisionAnnotationClient.parse_annotation('{"description": "A dog"}').description
            'A dog'
            >>> OpenAIVisionAnnotationClient.parse_annotation("not json").tags
            ()
        """
        try:
            return cls._decode(raw_text)
        except MalformedResponseError as e:
            logger.warning(f"Malformed AI output, keeping raw text as description: {e.message}")
            return Annotation.from_raw_text(raw_text)
