"""
API Router for Job Status and Recovery

Responsibility:
    HTTP interface for reading generation jobs: status by id (the primary
    recovery query), the recency fallback, the owner's history and
    re-dispatch of a job that never reached the worker queue.

Architecture Notes:
    - Part of API Layer (Presentation)
    - Depends on Application Layer query handlers and SubmitJobUseCase
    - Jobs of other owners are reported as not found
    - Status responses carry Cache-Control: no-cache for polling clients

Contains:
    - GET  /jobs                     - Owner's job history
    - GET  /jobs/recent              - Most recent SUCCEEDED job (legacy recovery)
    - GET  /jobs/{job_id}            - Job status by id
    - POST /jobs/{job_id}/dispatch   - Re-queue a PENDING job
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from pixelforge.api.dependencies import (
    get_current_owner,
    get_job_status_query_handler,
    get_list_jobs_query_handler,
    get_recover_job_query_handler,
    get_submit_job_use_case,
)
from pixelforge.api.schemas.common import ErrorResponse, error_detail
from pixelforge.application.queries import (
    GetJobStatusQuery,
    GetJobStatusQueryHandler,
    JobStatusResult,
    ListJobsQuery,
    ListJobsQueryHandler,
    RecoverJobQuery,
    RecoverJobQueryHandler,
)
from pixelforge.application.services import (
    JobDispatchError,
    JobNotDispatchableError,
    SubmitJobResult,
    SubmitJobUseCase,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================


router = APIRouter(
    prefix="/jobs",
    tags=["jobs"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing API key"},
        404: {"model": ErrorResponse, "description": "Not Found - Job ID not found"},
        422: {
            "model": ErrorResponse,
            "description": "Unprocessable Entity - Invalid job ID format",
        },
        503: {"model": ErrorResponse, "description": "Service Unavailable"},
    },
)

NO_CACHE_HEADERS = "no-cache, no-store, must-revalidate"


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    response_model=list[JobStatusResult],
    summary="List the caller's jobs",
    description="Newest first. Includes PENDING, SUCCEEDED and FAILED jobs.",
)
async def list_jobs(
    limit: int = Query(default=20, ge=1, le=100),
    owner_id: str = Depends(get_current_owner),
    handler: ListJobsQueryHandler = Depends(get_list_jobs_query_handler),
) -> list[JobStatusResult]:
    return await handler.handle(ListJobsQuery(owner_id=owner_id, limit=limit))


# Declared before /{job_id} so "recent" is not parsed as a job id
@router.get(
    "/recent",
    status_code=status.HTTP_200_OK,
    response_model=JobStatusResult,
    summary="Most recent succeeded job (legacy recovery)",
    description=(
        "Returns the newest SUCCEEDED job created since `since` "
        "(default: two minutes ago). Prefer GET /jobs/{job_id}: this query "
        "cannot tell apart concurrent jobs of the same owner."
    ),
)
async def get_recent_job(
    response: Response,
    since: Optional[datetime] = Query(default=None),
    owner_id: str = Depends(get_current_owner),
    handler: RecoverJobQueryHandler = Depends(get_recover_job_query_handler),
) -> JobStatusResult:
    result = await handler.handle(RecoverJobQuery(owner_id=owner_id, since=since))
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail(
                "NO_RECENT_JOB",
                "No succeeded job in the recovery window",
                {"since": since.isoformat() if since else None},
            ),
        )
    response.headers["Cache-Control"] = NO_CACHE_HEADERS
    return result


@router.get(
    "/{job_id}",
    status_code=status.HTTP_200_OK,
    response_model=JobStatusResult,
    summary="Get job status",
    description=(
        "Status of one job: pending with advisory progress text, succeeded "
        "with result_ref, or failed with failure_reason (the charge has been "
        "refunded). Clients poll this every few seconds or use it to recover "
        "after a lost response."
    ),
)
async def get_job_status(
    response: Response,
    job_id: UUID = Path(description="Job id returned by POST /generations"),
    owner_id: str = Depends(get_current_owner),
    handler: GetJobStatusQueryHandler = Depends(get_job_status_query_handler),
) -> JobStatusResult:
    """
    Raises:
        JobNotFoundException: Mapped to 404 by the global handler
    """
    result = await handler.handle(GetJobStatusQuery(job_id=str(job_id), owner_id=owner_id))
    response.headers["Cache-Control"] = NO_CACHE_HEADERS
    return result


@router.post(
    "/{job_id}/dispatch",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SubmitJobResult,
    summary="Re-queue a pending job",
    description=(
        "Hands a PENDING job to the worker queue again, e.g. after admission "
        "answered DISPATCH_FAILED. No additional charge."
    ),
)
async def dispatch_job(
    job_id: UUID = Path(description="Job id"),
    owner_id: str = Depends(get_current_owner),
    use_case: SubmitJobUseCase = Depends(get_submit_job_use_case),
) -> SubmitJobResult:
    try:
        return await use_case.redispatch(owner_id, str(job_id))
    except JobNotDispatchableError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_detail("JOB_NOT_DISPATCHABLE", str(e), {"job_id": e.job_id}),
        ) from e
    except JobDispatchError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_detail(
                "DISPATCH_FAILED", "Worker queue unavailable", {"job_id": e.job_id}
            ),
        ) from e
