"""
Redis API Key Pool

Shared pool of generation backend credentials with least-used selection.

Storage Format:
    - "api_keys:usage"   -> ZSET key_id scored by usage_count (active keys only)
    - "api_keys:secrets" -> HASH key_id -> secret value
    - "api_keys:inactive" -> HASH key_id -> usage_count at deactivation

Selection:
    acquire() reads the lowest-scored member and increments its score in one
    WATCH/MULTI unit, so two workers racing for the pool never both see the
    same pre-increment count.
"""

import logging
from typing import Optional
from uuid import uuid4

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError

from pixelforge.domain.generation.entities.api_key import ApiKey
from pixelforge.domain.shared.exceptions import (
    NoApiKeyAvailableError,
    StoreUnavailableError,
)
from .transactions import execute_watched

logger = logging.getLogger(__name__)

USAGE_KEY = "api_keys:usage"
SECRETS_KEY = "api_keys:secrets"
INACTIVE_KEY = "api_keys:inactive"


class RedisApiKeyPool:
    """Least-used API key pool with an atomically incremented usage counter."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    def add_key(self, value: str, key_id: Optional[str] = None) -> ApiKey:
        key_id = key_id or uuid4().hex[:12]
        try:
            pipe = self.redis.pipeline()
            pipe.hset(SECRETS_KEY, key_id, value)
            pipe.zadd(USAGE_KEY, {key_id: 0}, nx=True)
            pipe.hdel(INACTIVE_KEY, key_id)
            pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError("add_key failed", original_error=e) from e
        logger.info(f"API key {key_id} added to pool")
        return ApiKey(id=key_id, value=value)

    def deactivate(self, key_id: str) -> bool:
        """Remove a key from selection, keeping its usage count. False if unknown."""

        def _deactivate(pipe: Pipeline) -> bool:
            usage = pipe.zscore(USAGE_KEY, key_id)
            if usage is None:
                return False
            pipe.multi()
            pipe.zrem(USAGE_KEY, key_id)
            pipe.hset(INACTIVE_KEY, key_id, int(usage))
            pipe.execute()
            return True

        deactivated = execute_watched(
            self.redis, [USAGE_KEY], _deactivate, operation="deactivate api key"
        )
        if deactivated:
            logger.info(f"API key {key_id} deactivated")
        return deactivated

    def acquire(self) -> ApiKey:
        """
        Hand out the least-used active key and count the use.

        Raises:
            NoApiKeyAvailableError: Pool has no active key
            StoreUnavailableError: Redis failed
        """

        def _acquire(pipe: Pipeline) -> ApiKey:
            least_used = pipe.zrange(USAGE_KEY, 0, 0, withscores=True)
            if not least_used:
                raise NoApiKeyAvailableError()
            key_id, usage = least_used[0]
            value = pipe.hget(SECRETS_KEY, key_id)
            pipe.multi()
            pipe.zincrby(USAGE_KEY, 1, key_id)
            pipe.execute()
            return ApiKey(id=key_id, value=value or "", usage_count=int(usage) + 1)

        key = execute_watched(self.redis, [USAGE_KEY], _acquire, operation="acquire api key")
        logger.debug(f"API key {key.id} acquired (usage={key.usage_count})")
        return key

    def list_keys(self) -> list[ApiKey]:
        try:
            active = self.redis.zrange(USAGE_KEY, 0, -1, withscores=True)
            inactive = self.redis.hgetall(INACTIVE_KEY)
            secrets = self.redis.hgetall(SECRETS_KEY)
        except RedisError as e:
            raise StoreUnavailableError("list_keys failed", original_error=e) from e

        keys = [
            ApiKey(id=key_id, value=secrets.get(key_id, ""), usage_count=int(score))
            for key_id, score in active
        ]
        keys.extend(
            ApiKey(id=key_id, value=secrets.get(key_id, ""), usage_count=int(usage), active=False)
            for key_id, usage in inactive.items()
        )
        return keys
