"""
Tests for the Redis push channel.

Covers:
- Publishing (best-effort, never raises)
- Subscription: progress events skipped, terminal event returned
- Timeout and connection loss -> None (client falls back to polling)
- Subscriber degrades to None when Redis is unreachable
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError, RedisError

from pixelforge.infrastructure.notifications.redis_push_channel import (
    RedisPushChannel,
    RedisPushSubscriber,
    RedisPushSubscription,
    topic_for,
)


def _message(event) -> dict:
    return {"type": "message", "data": json.dumps(event) if isinstance(event, dict) else event}


@pytest.fixture
def pubsub():
    mock = MagicMock()
    mock.subscribe = AsyncMock()
    mock.unsubscribe = AsyncMock()
    mock.aclose = AsyncMock()
    return mock


# ============================================================================
# PUBLISHING
# ============================================================================


def test_topic_for():
    assert topic_for("job-1") == "jobs:job-1:events"


def test_publish(mock_redis):
    mock_redis.publish.return_value = 1
    channel = RedisPushChannel(mock_redis)

    assert channel.publish("job-1", {"type": "succeeded", "result_ref": "ref"}) is True

    topic, payload = mock_redis.publish.call_args.args
    assert topic == "jobs:job-1:events"
    assert json.loads(payload)["type"] == "succeeded"


def test_publish_never_raises(mock_redis):
    mock_redis.publish.side_effect = RedisError("down")

    assert RedisPushChannel(mock_redis).publish("job-1", {"type": "progress"}) is False


# ============================================================================
# SUBSCRIPTION
# ============================================================================


@pytest.mark.asyncio
async def test_wait_for_terminal_skips_progress_and_noise(pubsub):
    pubsub.get_message = AsyncMock(
        side_effect=[
            None,
            {"type": "subscribe", "data": 1},
            _message({"type": "progress", "message": "Rendering 1/1"}),
            _message("not json"),
            _message({"type": "failed", "failure_reason": "timeout"}),
        ]
    )
    subscription = RedisPushSubscription(pubsub, "job-1")

    event = await subscription.wait_for_terminal(timeout=1)

    assert event == {"type": "failed", "failure_reason": "timeout"}


@pytest.mark.asyncio
async def test_wait_for_terminal_timeout(pubsub):
    async def quiet(**kwargs):
        await asyncio.sleep(0.01)
        return None

    pubsub.get_message = quiet
    subscription = RedisPushSubscription(pubsub, "job-1")

    assert await subscription.wait_for_terminal(timeout=0.05) is None


@pytest.mark.asyncio
async def test_wait_for_terminal_connection_lost(pubsub):
    pubsub.get_message = AsyncMock(side_effect=ConnectionError("reset"))
    subscription = RedisPushSubscription(pubsub, "job-1")

    assert await subscription.wait_for_terminal(timeout=1) is None


@pytest.mark.asyncio
async def test_close_is_idempotent(pubsub):
    subscription = RedisPushSubscription(pubsub, "job-1")

    await subscription.close()
    await subscription.close()

    pubsub.unsubscribe.assert_awaited_once_with("jobs:job-1:events")
    pubsub.aclose.assert_awaited_once()


# ============================================================================
# SUBSCRIBER
# ============================================================================


@pytest.mark.asyncio
async def test_subscribe_opens_job_topic(pubsub):
    redis = MagicMock()
    redis.pubsub.return_value = pubsub

    subscription = await RedisPushSubscriber(redis).subscribe("job-1")

    assert isinstance(subscription, RedisPushSubscription)
    pubsub.subscribe.assert_awaited_once_with("jobs:job-1:events")


@pytest.mark.asyncio
async def test_subscribe_unavailable_returns_none(pubsub):
    pubsub.subscribe.side_effect = ConnectionError("refused")
    redis = MagicMock()
    redis.pubsub.return_value = pubsub

    assert await RedisPushSubscriber(redis).subscribe("job-1") is None
    pubsub.aclose.assert_awaited_once()
