"""
Redis Push Channel

Best-effort job event delivery over Redis pub/sub, one topic per job:
"jobs:{job_id}:events".

Publishing (worker side) is synchronous and never raises: the Job Store is
the durability boundary, a lost event only costs the client a poll.
Subscribing (client side) uses redis.asyncio so the subscription can race
the HTTP request inside one event loop.

Event format (JSON):
    {"job_id": str, "type": "progress" | "succeeded" | "failed",
     "message": str | None, "result_ref": str | None,
     "failure_reason": str | None, "timestamp": ISO 8601}
"""

import asyncio
import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis import Redis
from redis.exceptions import RedisError

from pixelforge.application.models import TERMINAL_EVENT_TYPES

logger = logging.getLogger(__name__)


def topic_for(job_id: str) -> str:
    return f"jobs:{job_id}:events"


class RedisPushChannel:
    """Publisher used by the worker."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    def publish(self, job_id: str, event: dict[str, Any]) -> bool:
        """
        Publish one event for a job.

        Returns:
            True if Redis accepted the message (receivers may still be zero)
        """
        try:
            receivers = self.redis.publish(topic_for(job_id), json.dumps(event))
            logger.debug(
                f"Published {event.get('type')} event for job {job_id} "
                f"to {receivers} subscriber(s)"
            )
            return True
        except RedisError as e:
            logger.warning(f"Push event for job {job_id} not delivered: {e}")
            return False


class RedisPushSubscription:
    """One open subscription to a job topic."""

    def __init__(self, pubsub: aioredis.client.PubSub, job_id: str) -> None:
        self.pubsub = pubsub
        self.job_id = job_id
        self._closed = False

    async def wait_for_terminal(
        self, timeout: Optional[float] = None
    ) -> Optional[dict[str, Any]]:
        """
        Block until a terminal event arrives.

        Progress events are skipped. Returns None on timeout or when the
        connection breaks (the caller falls back to polling).
        """
        try:
            return await asyncio.wait_for(self._next_terminal(), timeout)
        except asyncio.TimeoutError:
            return None
        except RedisError as e:
            logger.warning(f"Push subscription for job {self.job_id} lost: {e}")
            return None

    async def _next_terminal(self) -> dict[str, Any]:
        while True:
            message = await self.pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message is None or message.get("type") != "message":
                continue
            try:
                event = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed push event for job {self.job_id}")
                continue
            if event.get("type") in TERMINAL_EVENT_TYPES:
                return event

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.pubsub.unsubscribe(topic_for(self.job_id))
            await self.pubsub.aclose()
        except RedisError as e:
            logger.debug(f"Closing push subscription for job {self.job_id}: {e}")


class RedisPushSubscriber:
    """Subscriber used by the client orchestrator."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self.redis = redis

    async def subscribe(self, job_id: str) -> Optional[RedisPushSubscription]:
        """
        Open a subscription before the job is submitted.

        Returns None if Redis is unreachable; push is optional.
        """
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(topic_for(job_id))
        except RedisError as e:
            logger.warning(f"Push subscription for job {job_id} unavailable: {e}")
            await pubsub.aclose()
            return None
        return RedisPushSubscription(pubsub, job_id)
