"""
Token Verifier Port

Authentication is an external collaborator: the pipeline only needs to turn
a bearer credential into a user id.
"""

from typing import Protocol


class TokenVerifierProtocol(Protocol):
    def verify(self, token: str) -> str:
        """
        Resolve a bearer token to a user id.

        Raises:
            UnauthorizedError: If the token is missing or unknown
        """
        ...
