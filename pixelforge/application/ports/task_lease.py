"""
Task Lease Registry Port

Visible in-flight state for queued jobs: every delivery is counted and a
worker must hold an expiring lease before executing a job.
"""

from typing import Optional, Protocol


class TaskLeaseRegistryProtocol(Protocol):
    """Implemented by RedisTaskLeaseRegistry (Infrastructure Layer)."""

    def mark_queued(self, job_id: str) -> None: ...

    def acquire(self, job_id: str, worker_id: str) -> bool:
        """Count a delivery; True when `worker_id` now holds the lease."""
        ...

    def release(self, job_id: str, worker_id: str, outcome: str) -> None: ...

    def remaining_ttl(self, job_id: str) -> int:
        """Seconds until the current lease expires; 0 when none is held."""
        ...

    def get_state(self, job_id: str) -> Optional[dict]:
        """Queue state (state, deliveries, lease_held, ...) or None."""
        ...
