"""
Worker Executor - generation pipeline and failure path

Responsibility:
    Runs one admitted job to its terminal state: executes the planned
    stages sequentially, uploads the final artifact, marks the job
    SUCCEEDED, or routes any error into exactly one refunding failure path.

Architecture Notes:
    - Part of Application Layer (Services)
    - Synchronous: executed inside a Celery worker process
    - Depends only on Protocols (Job Store, ledger, leases, backend, storage,
      key pool, push channel); Infrastructure is injected
    - Invoked at-least-once: every mutation is guarded on the job still
      being PENDING, so redelivery never doubles an economic effect

Flow:
    run(job_id)
        1. Re-read job; missing or terminal -> skip
        2. Acquire lease; held by another worker -> defer until it expires
        3. Plan stages (PipelinePlanner)
        4. For each stage: progress text, API key, backend call
        5. Upload final artifact, then mark SUCCEEDED
        6. Award xp, publish "succeeded" (best-effort)
        Any error in 3-5 -> fail_job(): FAILED + refund + "failed" event
"""

import logging
import os
import socket
from datetime import datetime
from typing import Optional

import psutil
from pydantic import BaseModel, ValidationError

from pixelforge.application.models import JobEventType, build_job_event
from pixelforge.application.ports.api_key_pool import ApiKeyPoolProtocol
from pixelforge.application.ports.blob_storage import BlobStorageProtocol
from pixelforge.application.ports.generation_backend import GenerationBackendProtocol
from pixelforge.application.ports.push_channel import PushChannelProtocol
from pixelforge.application.ports.task_lease import TaskLeaseRegistryProtocol
from pixelforge.application.services.pipeline_planner import PipelinePlanner
from pixelforge.domain.generation.entities.job import (
    MAX_FAILURE_REASON_LENGTH,
    GenerationJob,
    truncate_reason,
)
from pixelforge.domain.generation.pricing import calculate_xp
from pixelforge.domain.generation.repositories.billing_ledger import (
    BillingLedgerProtocol,
)
from pixelforge.domain.generation.repositories.job_repository import (
    JobRepositoryProtocol,
)
from pixelforge.domain.generation.value_objects.generation_request import (
    GenerationRequest,
)
from pixelforge.domain.generation.value_objects.pipeline_stage import PipelineStage
from pixelforge.domain.shared.exceptions import (
    GenerationBackendError,
    NoApiKeyAvailableError,
    PipelineStageError,
    StoreUnavailableError,
    UploadError,
)

logger = logging.getLogger(__name__)

REFUND_REASON_LENGTH = 50
# Seconds added to a live lease's TTL before the deferred delivery comes back
LEASE_EXPIRY_GRACE = 1
ARTIFACT_CONTENT_TYPE = "image/png"

_process = psutil.Process(os.getpid())


def log_with_memory(stage: str, message: str) -> None:
    memory_mb = _process.memory_info().rss / 1024 / 1024
    timestamp = datetime.now().isoformat()
    logger.info(f"{timestamp} | {memory_mb:.1f}MB | {stage} | {message}")


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


def refund_description(reason: str) -> str:
    """
    REFUND ledger description with the reason cut to 50 characters.

    Examples:
        >>> refund_description("Stage 'render 1/1' failed: Backend timed out after 120.0s")
        "Refund: Stage 'render 1/1' failed: Backend timed out after"
    """
    return f"Refund: {truncate_reason(reason, REFUND_REASON_LENGTH)}"


class WorkerRunResult(BaseModel):
    """
    Outcome of one worker invocation.

    Attributes:
        job_id: Job id
        outcome: succeeded, failed, skipped or deferred (leased elsewhere,
            deliver again after retry_after seconds)
        result_ref: Artifact reference when succeeded
        failure_reason: Reason when failed
        skip_reason: Why the invocation did nothing
        retry_after: Seconds until the blocking lease expires (deferred only)
        stages_completed: Number of stages that produced output
    """

    job_id: str
    outcome: str
    result_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    skip_reason: Optional[str] = None
    retry_after: Optional[int] = None
    stages_completed: int = 0


class WorkerExecutor:
    """
    Executes generation jobs.

    Example:
        >>> executor = WorkerExecutor(
        ...     job_store=RedisJobStore(redis, ledger),
        ...     ledger=ledger,
        ...     backend=HttpGenerationBackend(),
        ...     api_keys=RedisApiKeyPool(redis),
        ...     blob_storage=LocalBlobStorage(),
        ...     leases=RedisTaskLeaseRegistry(redis),
        ...     push_channel=RedisPushChannel(redis),
        ... )
        >>> executor.run("3fa85f64-5717-4562-b3fc-2c963f66afa6").outcome
        'succeeded'
    """

    def __init__(
        self,
        job_store: JobRepositoryProtocol,
        ledger: BillingLedgerProtocol,
        backend: GenerationBackendProtocol,
        api_keys: ApiKeyPoolProtocol,
        blob_storage: BlobStorageProtocol,
        leases: Optional[TaskLeaseRegistryProtocol] = None,
        push_channel: Optional[PushChannelProtocol] = None,
        planner: Optional[PipelinePlanner] = None,
        worker_id: Optional[str] = None,
        timeout_exceptions: tuple[type[BaseException], ...] = (),
    ):
        self.job_store = job_store
        self.ledger = ledger
        self.backend = backend
        self.api_keys = api_keys
        self.blob_storage = blob_storage
        self.leases = leases
        self.push_channel = push_channel
        self.planner = planner or PipelinePlanner()
        self.worker_id = worker_id or default_worker_id()
        # Raised asynchronously by the task runtime (e.g. a soft time limit)
        self.timeout_exceptions = timeout_exceptions

    # ========================================================================
    # ENTRY POINT
    # ========================================================================

    def run(self, job_id: str) -> WorkerRunResult:
        """
        Run one job to a terminal state (or skip it).

        A job leased by another worker is not skipped but deferred: the
        holder may have died, so the caller must deliver again once the
        lease has expired (result.retry_after seconds).

        Raises:
            StoreUnavailableError: Job Store unreachable while reading the job
                or recording success; the job stays PENDING and the caller
                may redeliver
        """
        job = self.job_store.get(job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found, nothing to do")
            return WorkerRunResult(job_id=job_id, outcome="skipped", skip_reason="missing")
        if job.is_terminal():
            logger.info(f"Job {job_id} already {job.state.value}, skipping redelivery")
            return WorkerRunResult(
                job_id=job_id, outcome="skipped", skip_reason=f"already {job.state.value}"
            )

        if self.leases is not None and not self.leases.acquire(job_id, self.worker_id):
            retry_after = self.leases.remaining_ttl(job_id) + LEASE_EXPIRY_GRACE
            logger.warning(
                f"Job {job_id} leased by another worker, deferring delivery by {retry_after}s"
            )
            return WorkerRunResult(
                job_id=job_id,
                outcome="deferred",
                skip_reason="in flight elsewhere",
                retry_after=retry_after,
            )

        result: Optional[WorkerRunResult] = None
        try:
            result = self._execute(job)
            return result
        finally:
            if self.leases is not None:
                self.leases.release(
                    job_id, self.worker_id, outcome=result.outcome if result else "error"
                )

    # ========================================================================
    # PIPELINE
    # ========================================================================

    def _execute(self, job: GenerationJob) -> WorkerRunResult:
        log_with_memory("START", f"Job {job.id} for {job.owner_id} (cost={job.cost})")

        try:
            request = GenerationRequest.from_payload(job.payload)
        except ValidationError as e:
            return self._fail(job.id, f"Invalid generation payload: {e.error_count()} error(s)")

        stages = self.planner.plan(request)
        outputs: dict[int, bytes] = {}
        current: Optional[PipelineStage] = None
        try:
            for stage in stages:
                current = stage
                self.job_store.update_progress(job.id, stage.progress_message)
                log_with_memory(stage.name.upper(), stage.progress_message)
                outputs[stage.index] = self._run_stage(stage, outputs)

            current = None
            artifact = outputs[stages[-1].index]
            result_ref = self.blob_storage.put(artifact, ARTIFACT_CONTENT_TYPE)
        except (PipelineStageError, UploadError) as e:
            return self._fail(job.id, e.message, stages_completed=len(outputs))
        except self.timeout_exceptions:
            stage_name = current.name if current is not None else "upload"
            reason = PipelineStageError(stage_name, "time limit exceeded").message
            return self._fail(job.id, reason, stages_completed=len(outputs))
        except Exception as e:
            logger.exception(f"Job {job.id}: unexpected pipeline error")
            return self._fail(
                job.id, f"Unexpected error: {type(e).__name__}", stages_completed=len(outputs)
            )
        finally:
            outputs.clear()

        transitioned = self.job_store.mark_succeeded(job.id, result_ref)
        if not transitioned:
            # Another delivery finished first; its artifact is the result
            logger.warning(f"Job {job.id} no longer pending, discarding {result_ref}")
            return WorkerRunResult(
                job_id=job.id, outcome="skipped", skip_reason="finished by another delivery"
            )

        self._award_xp(job.owner_id, request)
        self._publish(job.id, JobEventType.SUCCEEDED, result_ref=result_ref)
        log_with_memory("DONE", f"Job {job.id} succeeded: {result_ref}")
        return WorkerRunResult(
            job_id=job.id,
            outcome="succeeded",
            result_ref=result_ref,
            stages_completed=len(stages),
        )

    def _run_stage(self, stage: PipelineStage, outputs: dict[int, bytes]) -> bytes:
        """
        Execute one stage against the backend.

        Raises:
            PipelineStageError: Missing reference, no API key, backend
                failure or empty output
        """
        try:
            references = [self.blob_storage.get(ref) for ref in stage.reference_refs]
        except (OSError, ValueError) as e:
            raise PipelineStageError(stage.name, f"reference image unavailable: {e}") from e
        references.extend(outputs[index] for index in stage.consumes)

        try:
            api_key = self.api_keys.acquire()
            output = self.backend.generate(stage.parameters, references, api_key.value)
        except (GenerationBackendError, NoApiKeyAvailableError, StoreUnavailableError) as e:
            raise PipelineStageError(stage.name, e.message) from e

        if not output:
            raise PipelineStageError(stage.name, "backend returned no image")
        logger.debug(f"Stage {stage.name} produced {len(output)} bytes")
        return output

    # ========================================================================
    # FAILURE PATH
    # ========================================================================

    def fail_job(self, job_id: str, reason: str) -> bool:
        """
        Failure path: FAILED + credit original cost + REFUND entry, once.

        Guarded on the job still being PENDING, so calling it again for the
        same job (redelivery, retry) applies nothing.

        Returns:
            True if this call refunded the job
        """
        refunded = self.job_store.fail_with_refund(
            job_id, reason, refund_description(reason)
        )
        if refunded:
            self._publish(
                job_id,
                JobEventType.FAILED,
                failure_reason=truncate_reason(reason, MAX_FAILURE_REASON_LENGTH),
            )
        return refunded

    def _fail(
        self, job_id: str, reason: str, stages_completed: int = 0
    ) -> WorkerRunResult:
        log_with_memory("ERROR", f"Job {job_id} failed: {reason}")
        refunded = self.fail_job(job_id, reason)
        if not refunded:
            return WorkerRunResult(
                job_id=job_id,
                outcome="skipped",
                skip_reason="failure already recorded",
                stages_completed=stages_completed,
            )
        return WorkerRunResult(
            job_id=job_id,
            outcome="failed",
            failure_reason=truncate_reason(reason, MAX_FAILURE_REASON_LENGTH),
            stages_completed=stages_completed,
        )

    # ========================================================================
    # BEST-EFFORT SIDE EFFECTS
    # ========================================================================

    def _award_xp(self, owner_id: str, request: GenerationRequest) -> None:
        try:
            self.ledger.award_xp(owner_id, calculate_xp(request))
        except StoreUnavailableError as e:
            logger.warning(f"Xp award for {owner_id} not stored: {e}")

    def _publish(self, job_id: str, event_type: JobEventType, **fields: object) -> None:
        if self.push_channel is None:
            return
        self.push_channel.publish(job_id, build_job_event(job_id, event_type, **fields))
