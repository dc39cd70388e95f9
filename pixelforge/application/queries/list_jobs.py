"""
ListJobsQuery - owner job history (newest first).
"""

from pydantic import BaseModel, Field

from pixelforge.application.queries.get_job_status import JobStatusResult
from pixelforge.domain.generation.repositories.job_repository import (
    JobRepositoryProtocol,
)


class ListJobsQuery(BaseModel):
    owner_id: str
    limit: int = Field(default=20, ge=1, le=100)


class ListJobsQueryHandler:
    def __init__(self, job_store: JobRepositoryProtocol):
        self.job_store = job_store

    async def handle(self, query: ListJobsQuery) -> list[JobStatusResult]:
        jobs = self.job_store.list_for_owner(query.owner_id, limit=query.limit)
        return [JobStatusResult.from_job(job) for job in jobs]
