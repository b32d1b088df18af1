"""
Tests for FastAPI application setup.

Covers:
- Health check endpoint
- Lifespan starting and stopping the annotation pipeline
- Domain exception mapping to HTTP status codes
- Generic 500 handler
"""

import pytest
from fastapi.testclient import TestClient

from image_gallery.api.main import _resolve_domain_error, create_app
from image_gallery.domain.shared.exceptions import (
    AnnotationRecordNotFoundError,
    DomainException,
    ImageNotFoundError,
    InvalidAccessSignatureError,
    InvalidInputError,
    InvalidStatusTransitionError,
    StorageError,
    UnauthorizedError,
    UnsupportedImageError,
)


# ============================================================================
# HEALTH / LIFESPAN TESTS
# ============================================================================


def test_health_check_reports_running_pipeline(client):
    """Test /health returns ok with pipeline state."""
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["pipeline_running"] is True
    assert body["queue_depth"] == 0
    assert body["version"] == "0.1.0"


def test_health_check_reports_degraded_store(container, monkeypatch):
    """Test /health reports degraded when the store is unreachable."""

    async def unhealthy():
        return False

    monkeypatch.setattr(container, "store_healthy", unhealthy)

    with TestClient(create_app(container)) as test_client:
        body = test_client.get("/health").json()

    assert body["status"] == "degraded"


def test_lifespan_starts_and_stops_pipeline(container):
    """Test the pipeline runs only inside the app lifespan."""
    app = create_app(container)
    assert container.pipeline.is_started is False

    with TestClient(app):
        assert container.pipeline.is_started is True

    assert container.pipeline.is_started is False
    assert container.client.shutdown_called is True


# ============================================================================
# EXCEPTION MAPPING TESTS
# ============================================================================


@pytest.mark.parametrize(
    "exc,expected",
    [
        (ImageNotFoundError("img-1"), (404, "IMAGE_NOT_FOUND")),
        (AnnotationRecordNotFoundError("img-1"), (404, "ANNOTATION_NOT_FOUND")),
        (UnauthorizedError("nope"), (401, "UNAUTHORIZED")),
        (InvalidAccessSignatureError("expired"), (403, "INVALID_SIGNATURE")),
        (UnsupportedImageError("bad"), (415, "UNSUPPORTED_IMAGE")),
        (InvalidInputError("bad"), (400, "INVALID_INPUT")),
        (
            InvalidStatusTransitionError("processing", "pending"),
            (409, "ANNOTATION_IN_PROGRESS"),
        ),
        (StorageError("disk"), (500, "STORAGE_ERROR")),
        (DomainException("other"), (400, "DOMAINEXCEPTION")),
    ],
)
def test_domain_errors_map_to_http_status(exc, expected):
    """Test the most specific mapping wins."""
    assert _resolve_domain_error(exc) == expected


def test_unauthorized_response_has_challenge_header(client):
    """Test 401 responses carry WWW-Authenticate and the error envelope."""
    response = client.get("/api/images/img-1")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    body = response.json()
    assert body["code"] == "UNAUTHORIZED"
    assert body["details"]["exception_type"] == "UnauthorizedError"


def test_invalid_token_is_rejected(client):
    """Test an unknown bearer token is 401."""
    response = client.get(
        "/api/images/img-1", headers={"Authorization": "Bearer wrong"}
    )

    assert response.status_code == 401


def test_non_bearer_scheme_is_rejected(client):
    """Test Basic auth is not accepted."""
    response = client.get(
        "/api/images/img-1", headers={"Authorization": "Basic dXNlcjpwYXNz"}
    )

    assert response.status_code == 401


def test_not_found_details_include_image_id(client, auth_headers):
    """Test domain error details carry the image id."""
    response = client.get("/api/images/missing", headers=auth_headers)

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "IMAGE_NOT_FOUND"
    assert body["details"]["image_id"] == "missing"


def test_unexpected_error_returns_500(container, auth_headers, monkeypatch):
    """Test unhandled exceptions become INTERNAL_SERVER_ERROR."""

    async def broken_get(image_id):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(container.image_repository, "get", broken_get)

    with TestClient(create_app(container), raise_server_exceptions=False) as test_client:
        response = test_client.get("/api/images/img-1", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_SERVER_ERROR"
