"""
Push Channel Ports

Best-effort job events, one topic per job id. The worker publishes one
terminal event; the client subscribes before submitting. Delivery is never
assumed: the Job Store stays the source of truth.
"""

from typing import Any, Optional, Protocol


class PushChannelProtocol(Protocol):
    """Worker-side publisher. Implemented by RedisPushChannel."""

    def publish(self, job_id: str, event: dict[str, Any]) -> bool:
        """Publish an event; returns False instead of raising when delivery fails."""
        ...


class PushSubscriptionProtocol(Protocol):
    """An open subscription on one job topic."""

    async def wait_for_terminal(
        self, timeout: Optional[float] = None
    ) -> Optional[dict[str, Any]]:
        """Next terminal event, or None on timeout or lost connection."""
        ...

    async def close(self) -> None: ...


class PushSubscriberProtocol(Protocol):
    """Client-side subscriber. Implemented by RedisPushSubscriber."""

    async def subscribe(self, job_id: str) -> Optional[PushSubscriptionProtocol]:
        """Open a subscription; None when the channel is unavailable."""
        ...
