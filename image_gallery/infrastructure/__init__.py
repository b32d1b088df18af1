"""
Infrastructure Layer - External Dependencies

Implements technical capabilities that support the Domain and Application
Layers. Handles all external dependencies: Redis, file system, AI service.

Architecture:
    - Implements Domain repository interfaces (Dependency Inversion)
    - Implements Application Layer ports (ImageStorageProtocol, TokenVerifierProtocol)
    - No business logic (only technical implementations)

Modules:
    - persistence: Redis and in-memory state store / image repository
    - storage: Local filesystem storage with signed URLs
    - imaging: Pillow thumbnails
    - ai: OpenAI-compatible vision annotation client
    - auth: Bearer token verification
"""
