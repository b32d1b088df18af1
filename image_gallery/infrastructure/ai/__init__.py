"""
AI Infrastructure Module

Adapters for external AI services.
"""
