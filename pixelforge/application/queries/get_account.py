"""
GetAccountQuery - CQRS Read Query

Balance, xp and recent transaction log entries of the requesting owner.
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from pixelforge.domain.generation.entities.account import LedgerEntry
from pixelforge.domain.generation.repositories.billing_ledger import (
    BillingLedgerProtocol,
)

logger = logging.getLogger(__name__)


class GetAccountQuery(BaseModel):
    """
    Attributes:
        owner_id: Authenticated owner
        include_entries: Also return the transaction log
        limit: Maximum number of log entries (newest first)
    """

    owner_id: str
    include_entries: bool = False
    limit: int = Field(default=50, ge=1, le=200)


class LedgerEntryResult(BaseModel):
    id: str
    amount: int
    kind: str
    description: str
    job_id: Optional[str] = None
    created_at: str

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "LedgerEntryResult":
        return cls(
            id=entry.id,
            amount=entry.amount,
            kind=entry.kind.value,
            description=entry.description,
            job_id=entry.job_id,
            created_at=entry.created_at.isoformat(),
        )


class AccountResult(BaseModel):
    """
    Result DTO for GetAccountQueryHandler.

    An owner without an account yet is reported with balance 0 and xp 0.
    """

    owner_id: str
    balance: int = Field(ge=0)
    xp: int = Field(ge=0)
    entries: list[LedgerEntryResult] = Field(default_factory=list)

    class Config:
        """Pydantic configuration for AccountResult."""

        json_schema_extra = {
            "example": {
                "owner_id": "user-1",
                "balance": 42,
                "xp": 120,
                "entries": [
                    {
                        "id": "9b1d...",
                        "amount": -3,
                        "kind": "CHARGE",
                        "description": "Group image (2 characters)",
                        "job_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                        "created_at": "2026-10-18T10:30:45+00:00",
                    }
                ],
            }
        }


class GetAccountQueryHandler:
    def __init__(self, ledger: BillingLedgerProtocol):
        self.ledger = ledger

    async def handle(self, query: GetAccountQuery) -> AccountResult:
        account = self.ledger.get_account(query.owner_id)
        entries: list[LedgerEntryResult] = []
        if query.include_entries:
            entries = [
                LedgerEntryResult.from_entry(entry)
                for entry in self.ledger.get_entries(query.owner_id, limit=query.limit)
            ]
        if account is None:
            logger.debug(f"No account for {query.owner_id}, reporting empty balance")
            return AccountResult(owner_id=query.owner_id, balance=0, xp=0, entries=entries)
        return AccountResult(
            owner_id=account.owner_id,
            balance=account.balance,
            xp=account.xp,
            entries=entries,
        )
