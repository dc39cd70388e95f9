"""
Submit Job Use Case - Admission Gateway

Responsibility:
    Synchronous entry point for paid generation: checks funds, debits and
    records the job in one atomic unit, then hands the job id to the worker
    queue.

Architecture Notes:
    - Part of Application Layer (Services/Use Cases)
    - Depends on the JobRepositoryProtocol (Domain) and the task lease port
    - Worker enqueueing goes through an injectable dispatcher (default: Celery)
    - No direct HTTP handling (that's API Layer concern)

Contains:
    - SubmitJobUseCase: Admission orchestration
    - SubmitJobResult: Response DTO
    - JobDispatchError / JobNotDispatchableError: Enqueue problems

Guarantees:
    - Never debit without a durable PENDING job (one atomic write)
    - Never enqueue before that write committed
    - Only the job id crosses the queue; the worker re-reads the payload
"""

import logging
from typing import Any, Callable, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from pixelforge.application.commands.submit_generation import SubmitGenerationCommand
from pixelforge.application.models import JobStatus
from pixelforge.application.ports.task_lease import TaskLeaseRegistryProtocol
from pixelforge.application.queries.get_job_status import JobNotFoundException
from pixelforge.domain.generation.entities.account import LedgerEntry, TransactionKind
from pixelforge.domain.generation.entities.job import GenerationJob, JobState
from pixelforge.domain.generation.repositories.billing_ledger import (
    BillingLedgerProtocol,
)
from pixelforge.domain.generation.repositories.job_repository import (
    JobRepositoryProtocol,
)
from pixelforge.domain.shared.exceptions import (
    InvalidGenerationRequestError,
    JobAlreadyExistsError,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ERRORS
# ============================================================================


class JobDispatchError(Exception):
    """
    Raised when a committed job could not be handed to the worker queue.

    The job stays PENDING with its charge; it can be re-dispatched with
    POST /api/jobs/{job_id}/dispatch.
    """

    def __init__(self, job_id: str, original_error: Exception):
        self.job_id = job_id
        self.original_error = original_error
        super().__init__(f"Job {job_id} admitted but not queued: {original_error}")


class JobNotDispatchableError(Exception):
    """Raised when re-dispatch targets a terminal job or one a worker holds."""

    def __init__(self, job_id: str, reason: str):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Job {job_id} cannot be dispatched: {reason}")


# ============================================================================
# RESULT (Response DTO)
# ============================================================================


class SubmitJobResult(BaseModel):
    """
    Result DTO for the admission use case.

    Attributes:
        job_id: Id of the admitted job (the client_request_id when given)
        status: Job status (pending right after admission)
        cost: Diamonds charged
        balance_after_debit: Owner balance after the charge
        duplicate: True when the job id was already admitted earlier
        message: Human-readable message
    """

    job_id: str = Field(description="Job id used for status and recovery")
    status: JobStatus = Field(default=JobStatus.PENDING)
    cost: int = Field(gt=0, description="Diamonds charged")
    balance_after_debit: int = Field(ge=0, description="Balance after the charge")
    duplicate: bool = Field(default=False)
    message: str = Field(default="Generation job queued")

    class Config:
        """Pydantic configuration for SubmitJobResult."""

        json_schema_extra = {
            "example": {
                "job_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                "status": "pending",
                "cost": 3,
                "balance_after_debit": 2,
                "duplicate": False,
                "message": "Generation job queued",
            }
        }


def enqueue_with_celery(job_id: str) -> None:
    # Imported here to avoid circular imports
    from pixelforge.application.tasks.generation_tasks import enqueue_generation_job

    enqueue_generation_job(job_id)


# ============================================================================
# USE CASE
# ============================================================================


class SubmitJobUseCase:
    """
    Admission Gateway.

    Flow:
        API -> SubmitGenerationCommand -> SubmitJobUseCase.execute()
            1. command.validate_business_rules()
            2. cost = pricing(request)           (computed once, here)
            3. job_store.create_with_charge()    (debit + CHARGE + PENDING job)
            4. leases.mark_queued(job_id)
            5. dispatcher(job_id)                (Celery apply_async, id only)

    Idempotency:
        With a client_request_id the job id is known to the client before the
        request is sent. A re-submission with the same id returns the stored
        job (duplicate=True) instead of charging again.

    Example:
        >>> use_case = SubmitJobUseCase(job_store, ledger, leases)
        >>> result = await use_case.execute(command)
        >>> result.status
        <JobStatus.PENDING: 'pending'>
    """

    def __init__(
        self,
        job_store: JobRepositoryProtocol,
        ledger: BillingLedgerProtocol,
        leases: Optional[TaskLeaseRegistryProtocol] = None,
        dispatcher: Optional[Callable[[str], Any]] = None,
    ):
        self.job_store = job_store
        self.ledger = ledger
        self.leases = leases
        self.dispatcher = dispatcher or enqueue_with_celery

    async def execute(self, command: SubmitGenerationCommand) -> SubmitJobResult:
        """
        Admit a generation command.

        Raises:
            InvalidGenerationRequestError: Business rules violated (nothing charged)
            InsufficientFundsError: Balance below cost (nothing charged)
            StoreUnavailableError: Atomic write failed (nothing charged)
            JobAlreadyExistsError: client_request_id belongs to another owner
            JobDispatchError: Charged and recorded, but not queued
        """
        command.validate_business_rules()
        return await self.submit_job(
            owner_id=command.owner_id,
            payload=command.request.to_payload(),
            cost=command.compute_cost(),
            job_id=command.client_request_id,
            description=command.charge_description(),
        )

    async def submit_job(
        self,
        owner_id: str,
        payload: dict[str, Any],
        cost: int,
        job_id: Optional[str] = None,
        description: str = "Image generation",
    ) -> SubmitJobResult:
        """
        Admit one job with a precomputed cost.

        Args:
            owner_id: Authenticated owner
            payload: Opaque generation payload stored on the job
            cost: Positive diamond cost (not re-derived here)
            job_id: Optional pre-generated job id
            description: CHARGE ledger entry description

        Returns:
            SubmitJobResult with the job id and the balance after the debit
        """
        if not isinstance(cost, int) or isinstance(cost, bool) or cost <= 0:
            raise InvalidGenerationRequestError(
                "Invalid generation request",
                errors=[f"cost must be a positive integer, got {cost!r}"],
            )

        job = GenerationJob(
            owner_id=owner_id, payload=payload, cost=cost, id=job_id or str(uuid4())
        )
        charge = LedgerEntry(
            account_id=owner_id,
            amount=-cost,
            kind=TransactionKind.CHARGE,
            description=description,
            job_id=job.id,
        )

        try:
            balance_after = self.job_store.create_with_charge(job, charge)
        except JobAlreadyExistsError:
            return self._existing_result(job.id, owner_id)

        logger.info(f"Job {job.id} admitted for {owner_id} (cost={cost})")
        self._dispatch(job.id)

        return SubmitJobResult(
            job_id=job.id,
            status=JobStatus.PENDING,
            cost=cost,
            balance_after_debit=balance_after,
            message=f"Generation job queued. Check status at GET /api/jobs/{job.id}",
        )

    async def redispatch(self, owner_id: str, job_id: str) -> SubmitJobResult:
        """
        Re-enqueue a PENDING job that no worker currently holds.

        Used when enqueueing failed after admission, or when a job was lost
        by the broker. Safe to call repeatedly: workers skip terminal jobs.

        Raises:
            JobNotFoundException: Unknown job or owned by someone else
            JobNotDispatchableError: Job is terminal or leased by a worker
            JobDispatchError: Queue still unavailable
        """
        job = self.job_store.get(job_id)
        if job is None or job.owner_id != owner_id:
            raise JobNotFoundException(job_id)
        if job.state is not JobState.PENDING:
            raise JobNotDispatchableError(job_id, f"job is {job.state.value}")
        if self.leases is not None:
            queue_state = self.leases.get_state(job_id)
            if queue_state and queue_state.get("lease_held"):
                raise JobNotDispatchableError(job_id, "a worker is processing it")

        self._dispatch(job_id)
        logger.info(f"Job {job_id} re-dispatched by {owner_id}")
        return SubmitJobResult(
            job_id=job_id,
            cost=job.cost,
            balance_after_debit=self.ledger.get_balance(owner_id),
            duplicate=True,
            message="Generation job re-queued",
        )

    def _dispatch(self, job_id: str) -> None:
        try:
            if self.leases is not None:
                self.leases.mark_queued(job_id)
            self.dispatcher(job_id)
        except Exception as e:
            logger.error(f"Job {job_id} committed but enqueue failed: {e}")
            raise JobDispatchError(job_id, e) from e
        logger.info(f"Job {job_id} handed to worker queue")

    def _existing_result(self, job_id: str, owner_id: str) -> SubmitJobResult:
        existing = self.job_store.get(job_id)
        if existing is None or existing.owner_id != owner_id:
            logger.warning(f"Job id {job_id} reused by another owner ({owner_id})")
            raise JobAlreadyExistsError(job_id)

        logger.info(f"Job {job_id} re-submitted by {owner_id}, returning stored job")
        return SubmitJobResult(
            job_id=existing.id,
            status=JobStatus.from_state(existing.state),
            cost=existing.cost,
            balance_after_debit=self.ledger.get_balance(owner_id),
            duplicate=True,
            message="Job already admitted; no additional charge",
        )
