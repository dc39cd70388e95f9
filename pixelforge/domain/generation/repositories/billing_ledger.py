"""
BillingLedger Interface

Atomic balance debit/credit with an append-only transaction log.
Every debit or credit appends its log entry in the same atomic operation.
"""

from typing import Optional, Protocol

from ..entities.account import Account, LedgerEntry, TransactionKind


class BillingLedgerProtocol(Protocol):
    """
    Protocol defining the Billing Ledger contract.

    Invariant: debit never drives a balance negative.
    """

    def open_account(self, owner_id: str, initial_balance: int = 0) -> Account:
        """Create the account if missing; existing accounts are left untouched."""
        ...

    def get_account(self, owner_id: str) -> Optional[Account]:
        ...

    def get_balance(self, owner_id: str) -> int:
        """Balance of the account, 0 for unknown owners."""
        ...

    def debit(
        self,
        owner_id: str,
        amount: int,
        description: str,
        job_id: Optional[str] = None,
    ) -> int:
        """
        Debit and log a CHARGE entry.

        Returns:
            New balance

        Raises:
            InsufficientFundsError: If balance < amount (no mutation)
        """
        ...

    def credit(
        self,
        owner_id: str,
        amount: int,
        description: str,
        kind: TransactionKind = TransactionKind.OTHER,
        job_id: Optional[str] = None,
    ) -> int:
        """Credit (no upper bound) and log an entry of `kind`. Returns new balance."""
        ...

    def award_xp(self, owner_id: str, amount: int) -> int:
        """Increase the xp counter. Returns new xp."""
        ...

    def get_entries(self, owner_id: str, limit: int = 50) -> list[LedgerEntry]:
        """Ledger entries, newest first."""
        ...
