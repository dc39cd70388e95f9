"""
Queries (CQRS read side)

Exports:
    - GetJobStatusQuery / GetJobStatusQueryHandler / JobStatusResult
    - JobNotFoundException
    - RecoverJobQuery / RecoverJobQueryHandler (recency fallback)
    - ListJobsQuery / ListJobsQueryHandler
    - GetAccountQuery / GetAccountQueryHandler / AccountResult
"""

from .get_account import (
    AccountResult,
    GetAccountQuery,
    GetAccountQueryHandler,
    LedgerEntryResult,
)
from .get_job_status import (
    GetJobStatusQuery,
    GetJobStatusQueryHandler,
    JobNotFoundException,
    JobStatusResult,
)
from .list_jobs import ListJobsQuery, ListJobsQueryHandler
from .recover_job import RECOVERY_WINDOW, RecoverJobQuery, RecoverJobQueryHandler

__all__ = [
    "AccountResult",
    "GetAccountQuery",
    "GetAccountQueryHandler",
    "GetJobStatusQuery",
    "GetJobStatusQueryHandler",
    "JobNotFoundException",
    "JobStatusResult",
    "LedgerEntryResult",
    "ListJobsQuery",
    "ListJobsQueryHandler",
    "RECOVERY_WINDOW",
    "RecoverJobQuery",
    "RecoverJobQueryHandler",
]
