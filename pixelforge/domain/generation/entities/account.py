"""
Account and Ledger Entry Entities

Account balance (diamonds + xp) and the append-only transaction log entry.
Both are mutated only through the Billing Ledger.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


class TransactionKind(str, Enum):
    """
    Kind of a ledger entry.

    CHARGE: Debit taken at admission (negative amount)
    REFUND: Credit returning a failed job's charge (positive amount)
    OTHER: Any other adjustment (top-ups, rewards, manual corrections)
    """

    CHARGE = "CHARGE"
    REFUND = "REFUND"
    OTHER = "OTHER"


@dataclass
class Account:
    """
    Diamond balance and xp counter of one owner.

    Invariant: balance is never negative.
    """

    owner_id: str
    balance: int = 0
    xp: int = 0

    def __post_init__(self) -> None:
        if self.balance < 0:
            raise ValueError(f"Account balance cannot be negative, got {self.balance}")

    def can_afford(self, amount: int) -> bool:
        return self.balance >= amount


@dataclass(frozen=True)
class LedgerEntry:
    """
    Immutable transaction log entry.

    Attributes:
        account_id: Owner whose balance changed
        amount: Signed diamond delta (negative for CHARGE)
        kind: CHARGE, REFUND or OTHER
        description: Human-readable reason
        job_id: Job the entry belongs to (None for non-job entries)
        id: Entry identifier
        created_at: Timestamp of the mutation

    Examples:
        >>> entry = LedgerEntry("user-1", -3, TransactionKind.CHARGE, "Image (Flash)", job_id="j1")
        >>> entry.amount
        -3
    """

    account_id: str
    amount: int
    kind: TransactionKind
    description: str
    job_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount": self.amount,
            "kind": self.kind.value,
            "description": self.description,
            "job_id": self.job_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_json(cls, raw: str) -> "LedgerEntry":
        data = json.loads(raw)
        return cls(
            id=data["id"],
            account_id=data["account_id"],
            amount=int(data["amount"]),
            kind=TransactionKind(data["kind"]),
            description=data.get("description", ""),
            job_id=data.get("job_id"),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
