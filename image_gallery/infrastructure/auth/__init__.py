"""Authentication adapters."""

from .token_verifier import StaticTokenVerifier, parse_token_table

__all__ = ["StaticTokenVerifier", "parse_token_table"]
