"""
Redis Task Lease Registry

Makes the worker queue's in-flight state visible. Celery delivers jobs
at least once; this registry records every delivery and grants a
time-limited lease, so a redelivered job is observed (and skipped while
another worker still holds it) instead of inferred from side effects.

Storage Format:
    - "task:{job_id}"  -> HASH {state, deliveries, worker_id, enqueued_at,
                                started_at, finished_at, outcome}
    - "lease:{job_id}" -> STRING worker_id with TTL (SET NX EX)

States:
    queued -> in_flight -> done
    A lease that expires without release leaves state "in_flight" with a
    stale started_at; the next delivery re-acquires it. A delivery that
    finds a live lease is deferred until remaining_ttl() has passed.
"""

import logging
import os
from typing import Optional

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError

from pixelforge.domain.generation.entities.job import utc_now
from pixelforge.domain.shared.exceptions import StoreUnavailableError
from .transactions import execute_watched

logger = logging.getLogger(__name__)


def default_lease_ttl() -> int:
    """Lease lifetime in seconds (JOB_LEASE_TTL, default 360)."""
    return int(os.getenv("JOB_LEASE_TTL", "360"))


class TaskState:
    QUEUED = "queued"
    IN_FLIGHT = "in_flight"
    DONE = "done"


class RedisTaskLeaseRegistry:
    """
    Lease and delivery bookkeeping for generation tasks.

    Examples:
        >>> leases = RedisTaskLeaseRegistry(get_redis_client(), lease_ttl_seconds=360)
        >>> leases.mark_queued("job-1")
        >>> leases.acquire("job-1", "celery@host-a")
        True
        >>> leases.acquire("job-1", "celery@host-b")  # redelivery while in flight
        False
        >>> leases.release("job-1", "celery@host-a", outcome="succeeded")
    """

    def __init__(self, redis: Redis, lease_ttl_seconds: Optional[int] = None) -> None:
        self.redis = redis
        self.lease_ttl = lease_ttl_seconds or default_lease_ttl()

    def _get_task_key(self, job_id: str) -> str:
        return f"task:{job_id}"

    def _get_lease_key(self, job_id: str) -> str:
        return f"lease:{job_id}"

    def mark_queued(self, job_id: str) -> None:
        try:
            self.redis.hset(
                self._get_task_key(job_id),
                mapping={
                    "state": TaskState.QUEUED,
                    "enqueued_at": utc_now().isoformat(),
                },
            )
        except RedisError as e:
            raise StoreUnavailableError("mark_queued failed", original_error=e) from e

    def acquire(self, job_id: str, worker_id: str) -> bool:
        """
        Record a delivery and try to take the lease.

        Every call counts as one delivery, whether or not the lease is granted.

        Returns:
            True if `worker_id` now holds the lease
        """
        task_key = self._get_task_key(job_id)
        try:
            deliveries = self.redis.hincrby(task_key, "deliveries", 1)
            acquired = bool(
                self.redis.set(
                    self._get_lease_key(job_id), worker_id, nx=True, ex=self.lease_ttl
                )
            )
            if acquired:
                self.redis.hset(
                    task_key,
                    mapping={
                        "state": TaskState.IN_FLIGHT,
                        "worker_id": worker_id,
                        "started_at": utc_now().isoformat(),
                    },
                )
        except RedisError as e:
            raise StoreUnavailableError("lease acquire failed", original_error=e) from e

        if deliveries > 1:
            logger.warning(
                f"Job {job_id} redelivered (delivery #{deliveries}) to {worker_id}; "
                f"lease {'granted' if acquired else 'held by another worker'}"
            )
        return acquired

    def release(self, job_id: str, worker_id: str, outcome: str) -> None:
        """Drop the lease if `worker_id` still owns it and record the outcome."""
        lease_key = self._get_lease_key(job_id)

        def _release(pipe: Pipeline) -> None:
            holder = pipe.get(lease_key)
            pipe.multi()
            if holder == worker_id:
                pipe.delete(lease_key)
            pipe.hset(
                self._get_task_key(job_id),
                mapping={
                    "state": TaskState.DONE,
                    "outcome": outcome,
                    "finished_at": utc_now().isoformat(),
                },
            )
            pipe.execute()

        try:
            execute_watched(self.redis, [lease_key], _release, operation="lease release")
        except StoreUnavailableError as e:
            # Lease expires on its own; only the bookkeeping is lost
            logger.warning(f"Lease release for job {job_id} failed: {e}")

    def remaining_ttl(self, job_id: str) -> int:
        """Seconds until the current lease expires; 0 when no lease is held."""
        try:
            ttl = int(self.redis.ttl(self._get_lease_key(job_id)))
        except RedisError as e:
            raise StoreUnavailableError("lease ttl lookup failed", original_error=e) from e
        # -2: no lease, -1: lease without expiry
        if ttl == -1:
            return self.lease_ttl
        return max(ttl, 0)

    def get_state(self, job_id: str) -> Optional[dict]:
        """
        Queue state of a job: state, deliveries, worker, timestamps and
        whether a lease is currently held. None if the job was never queued.
        """
        try:
            pipe = self.redis.pipeline(transaction=False)
            pipe.hgetall(self._get_task_key(job_id))
            pipe.ttl(self._get_lease_key(job_id))
            data, lease_ttl = pipe.execute()
        except RedisError as e:
            logger.warning(f"Redis error in get_state for {job_id}: {e}")
            return None
        if not data:
            return None
        return {
            "state": data.get("state", TaskState.QUEUED),
            "deliveries": int(data.get("deliveries", 0)),
            "worker_id": data.get("worker_id"),
            "enqueued_at": data.get("enqueued_at"),
            "started_at": data.get("started_at"),
            "finished_at": data.get("finished_at"),
            "outcome": data.get("outcome"),
            "lease_held": lease_ttl is not None and lease_ttl > 0,
        }

    def is_in_flight(self, job_id: str) -> bool:
        state = self.get_state(job_id)
        return bool(state and state["lease_held"])
