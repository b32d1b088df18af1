"""
Pytest Configuration and Shared Fixtures

This module contains pytest configuration and shared fixtures used across
all test suites (unit, integration).

Fixtures:
    - clock: Manually advanced UTC clock
    - memory_store / memory_images: In-memory persistence
    - fake_storage: In-memory ImageStorageProtocol with predictable URLs
    - scripted_client: AnnotationClientProtocol returning scripted outcomes
    - sample_annotation: Typical AI annotation
    - png_bytes: A small real PNG image

Architecture Notes:
    - No test needs a running Redis or network access
    - Time and sleep are injected, never waited for
"""

import asyncio
import io
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from PIL import Image as PILImage

from image_gallery.domain.annotation.value_objects.annotation import Annotation
from image_gallery.domain.shared.exceptions import StorageError
from image_gallery.infrastructure.persistence.memory import (
    InMemoryAnnotationStateStore,
    InMemoryImageRepository,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


# ============================================================================
# TEST DOUBLES
# ============================================================================


class FakeClock:
    """Callable returning a fixed UTC time until advanced."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeImageStorage:
    """
    In-memory storage.

    Locations listed in fail_locations raise StorageError on
    resolve_temporary_access.
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.fail_locations: set[str] = set()
        self.resolved: list[str] = []

    async def store(self, owner_id: str, name: str, data: bytes) -> str:
        location = f"{owner_id}/originals/{name}"
        self.files[location] = data
        return location

    async def store_thumbnail(self, owner_id: str, name: str, data: bytes) -> str:
        location = f"{owner_id}/thumbnails/{name}"
        self.files[location] = data
        return location

    async def resolve_temporary_access(self, location: str, ttl_seconds: int) -> str:
        if location in self.fail_locations or location not in self.files:
            raise StorageError("Stored file not found", location=location)
        self.resolved.append(location)
        return f"https://files.test/{location}?ttl={ttl_seconds}"

    async def delete(self, location: str) -> bool:
        return self.files.pop(location, None) is not None


class ScriptedAnnotationClient:
    """
    AnnotationClientProtocol double.

    Each analyze() call consumes the next scripted outcome: an Annotation is
    returned, an Exception is raised. When the script is exhausted the
    default annotation is returned. Tracks call order and the maximum
    number of concurrent calls.
    """

    def __init__(
        self,
        outcomes: Optional[list[Any]] = None,
        default: Optional[Annotation] = None,
        delay: float = 0.0,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.default = default or Annotation(
            description="A cat on a sofa", tags=["cat", "sofa"], colors=["black"]
        )
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self.shutdown_called = False
        self.start_count = 0

    async def analyze(self, image_reference: str) -> Annotation:
        self.calls.append(image_reference)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            # Yield to the loop so overlapping jobs would be observable
            await asyncio.sleep(self.delay)
            outcome = self.outcomes.pop(0) if self.outcomes else self.default
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.active -= 1

    def start(self) -> None:
        self.start_count += 1
        self.shutdown_called = False

    def shutdown(self) -> None:
        self.shutdown_called = True


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> InMemoryAnnotationStateStore:
    return InMemoryAnnotationStateStore(clock=clock)


@pytest.fixture
def memory_images() -> InMemoryImageRepository:
    return InMemoryImageRepository()


@pytest.fixture
def fake_storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture
def scripted_client() -> ScriptedAnnotationClient:
    return ScriptedAnnotationClient()


@pytest.fixture
def make_client():
    """Factory for ScriptedAnnotationClient with custom outcomes."""
    return ScriptedAnnotationClient


@pytest.fixture
def sample_annotation() -> Annotation:
    return Annotation(
        description="A red bicycle leaning on a brick wall",
        tags=["bicycle", "wall", "street"],
        colors=["red", "brown"],
    )


@pytest.fixture
def png_bytes() -> bytes:
    """A real 640x480 PNG image."""
    buffer = io.BytesIO()
    PILImage.new("RGB", (640, 480), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()
