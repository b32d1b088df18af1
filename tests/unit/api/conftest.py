"""
Common fixtures for API unit tests.

Provides shared test utilities:
- ServiceContainer wired with in-memory stores, local storage in tmp_path
  and a scripted annotation client
- FastAPI TestClient running the app lifespan (pipeline started/stopped)
- Auth headers and sample images
"""

import time
from urllib.parse import urlparse

import pytest
from fastapi.testclient import TestClient

from image_gallery.api.container import ServiceContainer
from image_gallery.api.main import create_app
from image_gallery.application.pipeline_config import PipelineConfig
from image_gallery.infrastructure.auth.token_verifier import StaticTokenVerifier
from image_gallery.infrastructure.persistence.memory import (
    InMemoryAnnotationStateStore,
    InMemoryImageRepository,
)
from image_gallery.infrastructure.storage.local_image_storage import (
    LocalImageStorage,
)

TOKENS = {"token-1": "user-1", "token-2": "user-2"}


@pytest.fixture
def build_container(tmp_path, make_client):
    """Factory: ServiceContainer with in-memory collaborators."""

    def _build(annotation_client=None, **overrides) -> ServiceContainer:
        return ServiceContainer.create(
            config=PipelineConfig(poll_interval_seconds=3600),
            state_store=InMemoryAnnotationStateStore(),
            image_repository=InMemoryImageRepository(),
            storage=LocalImageStorage(
                base_dir=str(tmp_path / "storage"),
                public_base_url="http://testserver",
                signing_secret="test-secret",
            ),
            client=annotation_client or make_client(),
            token_verifier=StaticTokenVerifier(TOKENS),
            **overrides,
        )

    return _build


@pytest.fixture
def container(build_container):
    return build_container()


@pytest.fixture
def client(container):
    """
    FastAPI TestClient for testing endpoints.

    Entering the context runs the lifespan, so the annotation pipeline
    processes jobs in the background while the test runs.
    """
    with TestClient(create_app(container)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer token-1"}


@pytest.fixture
def other_user_headers():
    return {"Authorization": "Bearer token-2"}


@pytest.fixture
def upload(client, auth_headers, png_bytes):
    """Upload one PNG as user-1 and return its image id."""

    def _upload(filename: str = "red.png") -> str:
        response = client.post(
            "/api/images/uploads",
            files=[("files", (filename, png_bytes, "image/png"))],
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["uploaded"][0]["image_id"]

    return _upload


@pytest.fixture
def wait_for_status(client, auth_headers):
    """Poll GET /metadata until the annotation reaches one of the statuses."""

    def _wait(image_id: str, statuses=("done", "failed"), timeout: float = 5.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            body = client.get(
                f"/api/images/{image_id}/metadata", headers=auth_headers
            ).json()
            if body.get("status") in statuses or time.monotonic() > deadline:
                return body
            time.sleep(0.01)

    return _wait


def relative_url(url: str) -> str:
    """Strip scheme and host so TestClient can request a signed URL."""
    parsed = urlparse(url)
    return f"{parsed.path}?{parsed.query}"


@pytest.fixture
def to_relative():
    return relative_url
