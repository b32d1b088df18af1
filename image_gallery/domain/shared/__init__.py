"""
Shared Domain Module

Exceptions shared by every layer of the annotation pipeline.
"""

from .exceptions import DomainException

__all__ = ["DomainException"]
