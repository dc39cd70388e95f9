"""
Notifications Infrastructure Module

Exports:
    - RedisPushChannel: Worker-side event publisher (implements PushChannelProtocol)
    - RedisPushSubscriber: Client-side async subscriber
    - topic_for: Topic name of a job
"""

from .redis_push_channel import (
    RedisPushChannel,
    RedisPushSubscriber,
    RedisPushSubscription,
    topic_for,
)

__all__ = [
    "RedisPushChannel",
    "RedisPushSubscriber",
    "RedisPushSubscription",
    "topic_for",
]
