"""
Static Token Verifier

Resolves bearer tokens to user ids from a configured token table.
Session issuance is handled elsewhere; this adapter only checks tokens.

Configuration:
    API_TOKENS="token-a:user-1,token-b:user-2"
"""

import hmac
import logging
import os
from typing import Mapping, Optional

from image_gallery.domain.shared.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


def parse_token_table(raw: str) -> dict[str, str]:
    """
    Parse "token:user,token:user" into a dict.

    Raises:
        ValueError: If an entry is not of the form token:user

    Examples:
        >>> parse_token_table("abc:user-1, def:user-2")
        {'abc': 'user-1', 'def': 'user-2'}
    """
    table: dict[str, str] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        token, sep, user_id = entry.partition(":")
        if not sep or not token.strip() or not user_id.strip():
            raise ValueError(f"Invalid API_TOKENS entry: {entry!r} (expected token:user)")
        table[token.strip()] = user_id.strip()
    return table


class StaticTokenVerifier:
    """Implements TokenVerifierProtocol with constant-time token comparison."""

    def __init__(self, tokens: Optional[Mapping[str, str]] = None) -> None:
        if tokens is None:
            tokens = parse_token_table(os.getenv("API_TOKENS", ""))
        self._tokens = dict(tokens)
        if not self._tokens:
            logger.warning("No API tokens configured, every request will be rejected")

    def verify(self, token: str) -> str:
        if not token:
            raise UnauthorizedError("Missing bearer token")

        for known_token, user_id in self._tokens.items():
            if hmac.compare_digest(known_token.encode(), token.encode()):
                return user_id
        raise UnauthorizedError("Invalid bearer token")
