"""
GetJobStatusQuery - CQRS Read Query

Query object and handler for reading one job from the Job Store. Also the
client's Recovery Query: after a transport fault the client already knows
the job id and asks for it directly.

Responsibility:
    - Query: Data holder with job_id and the requesting owner
    - Handler: Reads the job, its progress history and queue state

Architecture Notes:
    - Part of Application Layer (orchestration)
    - A miss is a genuine NotFound; failures are explicit FAILED jobs
    - Jobs of other owners are reported as not found
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from pixelforge.application.models import JobStatus
from pixelforge.application.ports.task_lease import TaskLeaseRegistryProtocol
from pixelforge.domain.generation.entities.job import GenerationJob
from pixelforge.domain.generation.repositories.job_repository import (
    JobRepositoryProtocol,
)

logger = logging.getLogger(__name__)


class GetJobStatusQuery(BaseModel):
    """
    Query object containing the job to read.

    Attributes:
        job_id: Job id returned by admission (or pre-generated by the client)
        owner_id: Authenticated owner; only their own jobs are visible
    """

    job_id: str = Field(description="Job id")
    owner_id: str = Field(description="Authenticated owner id")


class JobStatusResult(BaseModel):
    """
    Result DTO returned by GetJobStatusQueryHandler.

    Attributes:
        job_id: Job id
        status: pending, succeeded or failed
        cost: Diamonds charged at admission
        progress: Latest advisory progress text
        result_ref: Artifact reference (succeeded only)
        failure_reason: Failure reason (failed only)
        refunded: True for failed jobs (the refund is part of the failure)
        progress_history: Recent progress entries, newest first
        queue: Worker queue state (deliveries, lease) when known
        created_at / updated_at: ISO datetime strings
    """

    job_id: str
    status: JobStatus
    cost: int
    progress: Optional[str] = None
    result_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    refunded: bool = False
    progress_history: list[dict[str, Any]] = Field(default_factory=list)
    queue: Optional[dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_job(
        cls,
        job: GenerationJob,
        progress_history: Optional[list[dict[str, Any]]] = None,
        queue: Optional[dict[str, Any]] = None,
    ) -> "JobStatusResult":
        status = JobStatus.from_state(job.state)
        return cls(
            job_id=job.id,
            status=status,
            cost=job.cost,
            progress=job.progress,
            result_ref=job.result_ref,
            failure_reason=job.failure_reason,
            refunded=status is JobStatus.FAILED,
            progress_history=progress_history or [],
            queue=queue,
            created_at=job.created_at.isoformat(),
            updated_at=job.updated_at.isoformat(),
        )


class GetJobStatusQueryHandler:
    """
    Handler for reading job status.

    Architecture:
        API Layer -> QueryHandler -> Job Store (+ lease registry)

    Dependencies:
        - job_store: JobRepositoryProtocol
        - leases: Optional TaskLeaseRegistryProtocol for queue visibility
    """

    def __init__(
        self,
        job_store: JobRepositoryProtocol,
        leases: Optional[TaskLeaseRegistryProtocol] = None,
    ):
        self.job_store = job_store
        self.leases = leases

    async def handle(self, query: GetJobStatusQuery) -> JobStatusResult:
        """
        Read one job.

        Raises:
            JobNotFoundException: Unknown job id or job of another owner
            StoreUnavailableError: Job Store unreachable
        """
        logger.debug(f"Retrieving status for job: {query.job_id}")
        job = self.job_store.get(query.job_id)
        if job is None or job.owner_id != query.owner_id:
            logger.info(f"Job not found: {query.job_id}")
            raise JobNotFoundException(query.job_id)

        history = self.job_store.get_progress_history(job.id)
        queue = self.leases.get_state(job.id) if self.leases is not None else None

        result = JobStatusResult.from_job(job, progress_history=history, queue=queue)
        logger.debug(f"Job {job.id} status retrieved: {result.status.value}")
        return result


class JobNotFoundException(Exception):
    """
    Raised when a job does not exist for the requesting owner.

    API Layer converts this to 404 Not Found.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")
