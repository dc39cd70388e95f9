"""
Generation Entities

Contains:
    - GenerationJob: Paid job with explicit PENDING/SUCCEEDED/FAILED state
    - Account, LedgerEntry, TransactionKind: Billing records
    - ApiKey: Pooled generation backend credential
"""

from .account import Account, LedgerEntry, TransactionKind
from .api_key import ApiKey
from .job import GenerationJob, JobState, truncate_reason

__all__ = [
    "Account",
    "ApiKey",
    "GenerationJob",
    "JobState",
    "LedgerEntry",
    "TransactionKind",
    "truncate_reason",
]
