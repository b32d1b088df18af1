"""
API Layer - FastAPI Presentation Layer

Responsibility:
    HTTP interface for the application. Handles requests and responses and
    hands uploads to the annotation pipeline. No business logic.

Contains:
    - FastAPI routers (images, files)
    - Request/Response models (Pydantic)
    - Service container and dependency injection
    - Middleware configuration (CORS, logging)
"""
