"""
Persistence Module

Implementations of the domain repository protocols:
    - redis: production backend
    - memory: tests and local development
"""
