"""
Identity Provider Port

Resolves a request credential to an owner id. The Admission Gateway trusts
the result.
"""

from typing import Optional, Protocol


class IdentityProviderProtocol(Protocol):
    """Implemented by RedisIdentityProvider (Infrastructure Layer)."""

    def resolve(self, token: str) -> Optional[str]:
        """Owner id for `token`, or None when the token is unknown."""
        ...
