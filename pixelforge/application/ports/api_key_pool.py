"""
API Key Pool Port

Shared pool of backend credentials. Selection is least-used with an
atomically incremented usage counter.
"""

from typing import Optional, Protocol

from pixelforge.domain.generation.entities.api_key import ApiKey


class ApiKeyPoolProtocol(Protocol):
    """Implemented by RedisApiKeyPool (Infrastructure Layer)."""

    def acquire(self) -> ApiKey:
        """
        Least-used active key, usage already incremented.

        Raises:
            NoApiKeyAvailableError: No active key in the pool
        """
        ...

    def add_key(self, value: str, key_id: Optional[str] = None) -> ApiKey: ...

    def deactivate(self, key_id: str) -> bool: ...

    def list_keys(self) -> list[ApiKey]: ...
