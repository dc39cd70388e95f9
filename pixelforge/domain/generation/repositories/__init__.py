"""Repository interfaces of the generation subdomain."""

from .billing_ledger import BillingLedgerProtocol
from .job_repository import JobRepositoryProtocol

__all__ = ["BillingLedgerProtocol", "JobRepositoryProtocol"]
