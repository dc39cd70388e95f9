"""
JobRepository Interface

Repository contract for GenerationJob persistence (the Job Store).

Responsibility:
    - Define the job lifecycle storage contract
    - Keep admission (debit + CHARGE + insert) and the failure path
      (FAILED + credit + REFUND) as single atomic units
    - Enable Dependency Inversion (Domain defines, Infrastructure implements)

Architecture Notes:
    - Protocol-based interface (structural typing)
    - Implemented by RedisJobStore (Infrastructure Layer)
    - Application tests use an in-memory implementation
"""

from datetime import datetime
from typing import Optional, Protocol

from ..entities.account import LedgerEntry
from ..entities.job import GenerationJob


class JobRepositoryProtocol(Protocol):
    """
    Protocol defining the Job Store contract.

    State machine:
        PENDING -> SUCCEEDED(result_ref)   via mark_succeeded()
        PENDING -> FAILED(reason)          via fail_with_refund()
        Both targets are terminal; every transition is conditional on PENDING.
    """

    def create_with_charge(self, job: GenerationJob, charge: LedgerEntry) -> int:
        """
        Atomically debit the owner, append the CHARGE entry and insert the job.

        The balance check and the debit are serialized by a conditional update,
        so concurrent admissions for one owner cannot both pass the check.

        Args:
            job: New PENDING job (cost already computed)
            charge: CHARGE entry with amount == -job.cost

        Returns:
            Balance after the debit

        Raises:
            InsufficientFundsError: Balance < cost (nothing written)
            JobAlreadyExistsError: A job with job.id is already stored
            StoreUnavailableError: Storage failed (nothing written)
        """
        ...

    def get(self, job_id: str) -> Optional[GenerationJob]:
        """Return the job or None if it was never admitted (or expired)."""
        ...

    def update_progress(self, job_id: str, text: str) -> bool:
        """Set advisory progress text. Returns False if the job is not PENDING."""
        ...

    def mark_succeeded(self, job_id: str, result_ref: str) -> bool:
        """
        Transition PENDING -> SUCCEEDED.

        Returns:
            True if this call performed the transition, False if the job was
            missing or already terminal (idempotent no-op)
        """
        ...

    def fail_with_refund(
        self, job_id: str, reason: str, refund_description: str
    ) -> bool:
        """
        Failure path: mark FAILED, credit the original cost, append REFUND.

        All three happen in one atomic unit guarded on the job still being
        PENDING. A second call for the same job performs nothing.

        Returns:
            True if the refund was applied by this call, False otherwise
        """
        ...

    def list_for_owner(self, owner_id: str, limit: int = 20) -> list[GenerationJob]:
        """Owner's jobs, newest first."""
        ...

    def find_latest_succeeded(
        self, owner_id: str, since: datetime
    ) -> Optional[GenerationJob]:
        """Most recent SUCCEEDED job created at or after `since`, if any."""
        ...

    def get_progress_history(self, job_id: str) -> list[dict]:
        """Recent progress entries ({timestamp, message}), newest first."""
        ...
