"""
Celery Task for Asynchronous Image Generation

Long-running task that executes one admitted generation job.

Responsibility:
    - Build the Worker Executor with its Redis/HTTP/file system adapters
    - Run the job (pipeline, upload, terminal transition)
    - Convert the soft time limit into a stage error -> refund
    - Retry only when the Job Store itself is unreachable
    - Re-deliver later when another worker still holds the job's lease

Architecture Notes:
    - Part of Application Layer (orchestration)
    - Thin wrapper: all job semantics live in WorkerExecutor
    - Receives only the job id; the payload is re-read from the Job Store
    - acks_late + reject_on_worker_lost: at-least-once delivery; the
      executor's PENDING guards and the lease registry absorb redelivery
"""

import logging
from typing import Optional

from celery import Task
from celery.exceptions import SoftTimeLimitExceeded
from redis.exceptions import RedisError

from .celery_app import celery_app
from pixelforge.application.services.worker_executor import (
    WorkerExecutor,
    WorkerRunResult,
    log_with_memory,
)
from pixelforge.domain.shared.exceptions import PipelineStageError, StoreUnavailableError
from pixelforge.infrastructure.generation.http_backend import HttpGenerationBackend
from pixelforge.infrastructure.notifications.redis_push_channel import RedisPushChannel
from pixelforge.infrastructure.persistence.redis.api_key_pool import RedisApiKeyPool
from pixelforge.infrastructure.persistence.redis.billing_ledger import RedisBillingLedger
from pixelforge.infrastructure.persistence.redis.connection import get_redis_client
from pixelforge.infrastructure.persistence.redis.job_store import RedisJobStore
from pixelforge.infrastructure.persistence.redis.task_lease import (
    RedisTaskLeaseRegistry,
    default_lease_ttl,
)
from pixelforge.infrastructure.storage.blob_storage import LocalBlobStorage

# Configure logger for this module
logger = logging.getLogger(__name__)

# Deferrals behind a live lease before the delivery gives up
MAX_LEASE_DEFERRALS = 5


def build_worker_executor(
    worker_id: str, backend: HttpGenerationBackend
) -> WorkerExecutor:
    redis = get_redis_client()
    ledger = RedisBillingLedger(redis)
    return WorkerExecutor(
        job_store=RedisJobStore(redis, ledger),
        ledger=ledger,
        backend=backend,
        api_keys=RedisApiKeyPool(redis),
        blob_storage=LocalBlobStorage(),
        leases=RedisTaskLeaseRegistry(redis),
        push_channel=RedisPushChannel(redis),
        worker_id=worker_id,
        timeout_exceptions=(SoftTimeLimitExceeded,),
    )


@celery_app.task(
    bind=True,
    name="run_generation_job",
    max_retries=3,
    retry_backoff=True,  # Enable exponential backoff
    retry_backoff_max=900,  # Max 900 seconds (15 minutes) between retries
    time_limit=300,  # 5 minutes hard limit
    soft_time_limit=270,  # Warning 30 seconds before timeout
    acks_late=True,
    reject_on_worker_lost=True,
)
def run_generation_job(self: Task, job_id: str) -> dict:
    """
    Execute one generation job.

    Args:
        self: Celery task instance (bind=True gives access to self.request)
        job_id: Id of an admitted job; the payload is read from the Job Store

    Returns:
        dict: WorkerRunResult as dict
            {
                "job_id": str,
                "outcome": "succeeded" | "failed" | "skipped",
                "result_ref": str | None,
                "failure_reason": str | None,
                "skip_reason": str | None,
                "retry_after": int | None,
                "stages_completed": int
            }

    Retries:
        Only store outages (StoreUnavailableError, RedisError) are retried:
        the job is still PENDING and nothing was refunded. Stage and upload
        errors are terminal: they end in the refunding failure path inside
        the executor. Store retries wait at least one lease TTL, since a
        lease whose release failed blocks the next delivery until it expires.

        A delivery that finds the job leased by another worker (which may
        have died) is retried once that lease has expired instead of being
        acknowledged as done.
    """
    worker_id = f"{self.request.hostname or 'worker'}:{self.request.id}"
    backend = HttpGenerationBackend()
    executor: Optional[WorkerExecutor] = None

    try:
        executor = build_worker_executor(worker_id, backend)
        result = executor.run(job_id)
        if result.outcome == "deferred":
            logger.warning(f"Job {job_id}: leased elsewhere, retrying in {result.retry_after}s")
            raise self.retry(countdown=result.retry_after, max_retries=MAX_LEASE_DEFERRALS)
        logger.info(f"Job {job_id}: {result.outcome}")
        return result.model_dump()

    except SoftTimeLimitExceeded:
        # Hit outside the pipeline (e.g. while recording success)
        reason = PipelineStageError("finalize", "time limit exceeded").message
        log_with_memory("TIMEOUT", f"Job {job_id}: {reason}")
        refunded = executor.fail_job(job_id, reason) if executor is not None else False
        outcome = "failed" if refunded else "skipped"
        return WorkerRunResult(job_id=job_id, outcome=outcome, failure_reason=reason).model_dump()

    except (StoreUnavailableError, RedisError) as exc:
        log_with_memory("ERROR", f"Job {job_id}: job store unavailable: {exc}")
        raise self.retry(exc=exc, countdown=default_lease_ttl())

    finally:
        backend.close()


def enqueue_generation_job(job_id: str) -> None:
    """Hand a committed job to the queue; the Celery task id is the job id."""
    run_generation_job.apply_async(kwargs={"job_id": job_id}, task_id=job_id)
