"""
Application Layer - Use Cases and Orchestration

Coordinates the annotation pipeline: job queue, orchestrator, reconciliation
poller, upload/delete/re-analysis use cases and read queries.

Architecture:
    - Depends on Domain Layer only (protocols, entities, exceptions)
    - Infrastructure is injected through ports and domain protocols
"""
