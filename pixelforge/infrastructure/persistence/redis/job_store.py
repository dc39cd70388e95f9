"""
Redis Job Store

Durable job lifecycle records in Redis, implementing JobRepositoryProtocol.

Responsibility:
    - Admission as one atomic unit: debit + CHARGE entry + PENDING job insert
    - Conditional terminal transitions (PENDING -> SUCCEEDED / FAILED)
    - Failure path as one atomic unit: FAILED + credit + REFUND entry
    - Advisory progress text with a short history
    - Per-owner index for history and recency recovery

Storage Format:
    - "job:{job_id}"            -> HASH (GenerationJob.to_redis_mapping())
    - "job:{job_id}:progress"   -> LIST of JSON progress entries (newest first, max 10)
    - "owner:{owner_id}:jobs"   -> ZSET job_id scored by created_at timestamp

Concurrency:
    - Admission WATCHes the account hash and the job hash; the balance check
      runs again on every retry, so N concurrent submissions covering one
      cost admit exactly one.
    - Terminal transitions WATCH the job hash and re-check PENDING, which
      makes worker redelivery harmless: the second transition is a no-op.
"""

import json
import logging
import os
from datetime import datetime
from typing import Optional

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError

from pixelforge.domain.generation.entities.account import LedgerEntry, TransactionKind
from pixelforge.domain.generation.entities.job import (
    GenerationJob,
    JobState,
    utc_now,
)
from pixelforge.domain.shared.exceptions import (
    InsufficientFundsError,
    JobAlreadyExistsError,
    StoreUnavailableError,
)
from .billing_ledger import RedisBillingLedger
from .transactions import execute_watched

logger = logging.getLogger(__name__)


class RedisJobStore:
    """
    Job Store backed by Redis hashes, sharing the ledger's keyspace.

    Examples:
        >>> redis = get_redis_client()
        >>> store = RedisJobStore(redis, RedisBillingLedger(redis))
        >>> job = GenerationJob(owner_id="user-1", payload={"prompt": "fox"}, cost=3)
        >>> charge = LedgerEntry("user-1", -3, TransactionKind.CHARGE, "Image generation (Flash)", job.id)
        >>> store.create_with_charge(job, charge)
        2
        >>> store.mark_succeeded(job.id, "https://cdn.example/fox.png")
        True
        >>> store.mark_succeeded(job.id, "https://cdn.example/fox.png")
        False
    """

    def __init__(
        self,
        redis: Redis,
        ledger: RedisBillingLedger,
        job_ttl_seconds: Optional[int] = None,
    ) -> None:
        self.redis = redis
        self.ledger = ledger
        # 0 keeps job records forever (they back the billing history)
        self.job_ttl = (
            job_ttl_seconds
            if job_ttl_seconds is not None
            else int(os.getenv("JOB_TTL_SECONDS", "0"))
        )
        self.max_history_entries: int = 10

    def _get_job_key(self, job_id: str) -> str:
        return f"job:{job_id}"

    def _get_progress_key(self, job_id: str) -> str:
        return f"job:{job_id}:progress"

    def _get_owner_index_key(self, owner_id: str) -> str:
        return f"owner:{owner_id}:jobs"

    def _read_job(self, pipe: Pipeline, job_id: str) -> Optional[GenerationJob]:
        data = pipe.hgetall(self._get_job_key(job_id))
        return GenerationJob.from_redis_mapping(data) if data else None

    # ========================================================================
    # ADMISSION
    # ========================================================================

    def create_with_charge(self, job: GenerationJob, charge: LedgerEntry) -> int:
        if charge.kind is not TransactionKind.CHARGE or charge.amount != -job.cost:
            raise ValueError(
                f"Charge entry must be a CHARGE of {-job.cost}, got "
                f"{charge.kind.value} of {charge.amount}"
            )

        job_key = self._get_job_key(job.id)
        account_key = self.ledger._get_account_key(job.owner_id)

        def _admit(pipe: Pipeline) -> int:
            if pipe.exists(job_key):
                raise JobAlreadyExistsError(job.id)

            balance = self.ledger.read_balance(pipe, job.owner_id)
            if balance < job.cost:
                raise InsufficientFundsError(
                    job.owner_id, required=job.cost, available=balance
                )

            pipe.multi()
            self.ledger.queue_entry(pipe, charge)
            pipe.hset(job_key, mapping=job.to_redis_mapping())
            pipe.zadd(
                self._get_owner_index_key(job.owner_id),
                {job.id: job.created_at.timestamp()},
            )
            if self.job_ttl > 0:
                pipe.expire(job_key, self.job_ttl)
            pipe.execute()
            return balance - job.cost

        balance_after = execute_watched(
            self.redis, [account_key, job_key], _admit, operation="admission"
        )
        logger.info(
            f"Job {job.id} admitted for {job.owner_id}: charged {job.cost}, "
            f"balance {balance_after}"
        )
        return balance_after

    # ========================================================================
    # READS
    # ========================================================================

    def get(self, job_id: str) -> Optional[GenerationJob]:
        try:
            data = self.redis.hgetall(self._get_job_key(job_id))
        except RedisError as e:
            raise StoreUnavailableError("get job failed", original_error=e) from e
        return GenerationJob.from_redis_mapping(data) if data else None

    def list_for_owner(self, owner_id: str, limit: int = 20) -> list[GenerationJob]:
        try:
            job_ids = self.redis.zrevrange(
                self._get_owner_index_key(owner_id), 0, limit - 1
            )
            return self._load_many(job_ids)
        except RedisError as e:
            raise StoreUnavailableError("list_for_owner failed", original_error=e) from e

    def find_latest_succeeded(
        self, owner_id: str, since: datetime
    ) -> Optional[GenerationJob]:
        try:
            job_ids = self.redis.zrevrangebyscore(
                self._get_owner_index_key(owner_id), "+inf", since.timestamp()
            )
            for job in self._load_many(job_ids):
                if job.state is JobState.SUCCEEDED and job.result_ref:
                    return job
        except RedisError as e:
            raise StoreUnavailableError(
                "find_latest_succeeded failed", original_error=e
            ) from e
        return None

    def get_progress_history(self, job_id: str) -> list[dict]:
        """Last progress updates of a job, newest first. Empty on Redis errors."""
        try:
            raw = self.redis.lrange(
                self._get_progress_key(job_id), 0, self.max_history_entries - 1
            )
            return [json.loads(entry) for entry in raw]
        except RedisError as e:
            logger.warning(f"Redis error in get_progress_history for {job_id}: {e}")
            return []

    def _load_many(self, job_ids: list[str]) -> list[GenerationJob]:
        if not job_ids:
            return []
        pipe = self.redis.pipeline(transaction=False)
        for job_id in job_ids:
            pipe.hgetall(self._get_job_key(job_id))
        return [
            GenerationJob.from_redis_mapping(data) for data in pipe.execute() if data
        ]

    # ========================================================================
    # WORKER MUTATIONS
    # ========================================================================

    def update_progress(self, job_id: str, text: str) -> bool:
        job_key = self._get_job_key(job_id)
        progress_key = self._get_progress_key(job_id)

        def _progress(pipe: Pipeline) -> bool:
            job = self._read_job(pipe, job_id)
            if job is None or job.is_terminal():
                return False
            now = utc_now().isoformat()
            pipe.multi()
            pipe.hset(job_key, mapping={"progress": text, "updated_at": now})
            pipe.lpush(progress_key, json.dumps({"timestamp": now, "message": text}))
            pipe.ltrim(progress_key, 0, self.max_history_entries - 1)
            pipe.execute()
            return True

        try:
            return execute_watched(
                self.redis, [job_key], _progress, operation="update_progress"
            )
        except StoreUnavailableError as e:
            # Progress is advisory; never fail a job because of it
            logger.warning(f"Progress update for job {job_id} not stored: {e}")
            return False

    def mark_succeeded(self, job_id: str, result_ref: str) -> bool:
        job_key = self._get_job_key(job_id)

        def _succeed(pipe: Pipeline) -> bool:
            job = self._read_job(pipe, job_id)
            if job is None or job.is_terminal():
                return False
            job.mark_succeeded(result_ref)
            pipe.multi()
            pipe.hset(
                job_key,
                mapping={
                    "state": job.state.value,
                    "result_ref": job.result_ref,
                    "updated_at": job.updated_at.isoformat(),
                },
            )
            pipe.execute()
            return True

        transitioned = execute_watched(
            self.redis, [job_key], _succeed, operation="mark_succeeded"
        )
        if transitioned:
            logger.info(f"Job {job_id} marked as succeeded: {result_ref}")
        else:
            logger.info(f"Job {job_id} not pending, succeeded transition skipped")
        return transitioned

    def fail_with_refund(
        self, job_id: str, reason: str, refund_description: str
    ) -> bool:
        job_key = self._get_job_key(job_id)

        def _fail(pipe: Pipeline) -> bool:
            job = self._read_job(pipe, job_id)
            if job is None or job.is_terminal():
                return False
            job.mark_failed(reason)
            refund = LedgerEntry(
                account_id=job.owner_id,
                amount=job.cost,
                kind=TransactionKind.REFUND,
                description=refund_description,
                job_id=job.id,
            )
            pipe.multi()
            pipe.hset(
                job_key,
                mapping={
                    "state": job.state.value,
                    "failure_reason": job.failure_reason,
                    "updated_at": job.updated_at.isoformat(),
                },
            )
            self.ledger.queue_entry(pipe, refund)
            pipe.execute()
            return True

        refunded = execute_watched(
            self.redis, [job_key], _fail, operation="fail_with_refund"
        )
        if refunded:
            logger.error(f"Job {job_id} marked as failed and refunded: {reason}")
        else:
            logger.warning(f"Job {job_id} missing or terminal, refund skipped")
        return refunded
