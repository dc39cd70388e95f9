"""
RecoverJobQuery - recency Recovery Query

Legacy recovery for clients that lost the job id: "most recent SUCCEEDED
job of this owner created since T". Racy when one owner submits several
jobs at once; recovery by job id (GetJobStatusQuery) is preferred.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from pixelforge.application.queries.get_job_status import JobStatusResult
from pixelforge.domain.generation.entities.job import utc_now
from pixelforge.domain.generation.repositories.job_repository import (
    JobRepositoryProtocol,
)

logger = logging.getLogger(__name__)

RECOVERY_WINDOW = timedelta(minutes=2)


class RecoverJobQuery(BaseModel):
    """
    Attributes:
        owner_id: Authenticated owner
        since: Lower bound for created_at (default: now - 2 minutes)
    """

    owner_id: str
    since: Optional[datetime] = Field(default=None)

    def effective_since(self) -> datetime:
        return self.since or (utc_now() - RECOVERY_WINDOW)


class RecoverJobQueryHandler:
    def __init__(self, job_store: JobRepositoryProtocol):
        self.job_store = job_store

    async def handle(self, query: RecoverJobQuery) -> Optional[JobStatusResult]:
        """Most recent SUCCEEDED job with a result since the bound, or None."""
        since = query.effective_since()
        job = self.job_store.find_latest_succeeded(query.owner_id, since)
        if job is None:
            logger.info(f"No succeeded job for {query.owner_id} since {since.isoformat()}")
            return None
        logger.info(f"Recovered job {job.id} for {query.owner_id}")
        return JobStatusResult.from_job(job)
