"""
Redis Identity Provider

Resolves an opaque bearer token to an owner id. Tokens are stored hashed
(sha256), never in clear text.

Storage Format:
    - "auth:token:{sha256(token)}" -> STRING owner_id
"""

import hashlib
import logging
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from pixelforge.domain.shared.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RedisIdentityProvider:
    """Token -> owner id lookup used by the API authentication dependency."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    def _get_token_key(self, token: str) -> str:
        return f"auth:token:{hash_token(token)}"

    def resolve(self, token: str) -> Optional[str]:
        if not token:
            return None
        try:
            return self.redis.get(self._get_token_key(token))
        except RedisError as e:
            raise StoreUnavailableError("token lookup failed", original_error=e) from e

    def register(self, token: str, owner_id: str) -> None:
        """Bind a token to an owner (used by provisioning scripts and tests)."""
        try:
            self.redis.set(self._get_token_key(token), owner_id)
        except RedisError as e:
            raise StoreUnavailableError("token register failed", original_error=e) from e
        logger.info(f"Token registered for owner {owner_id}")
