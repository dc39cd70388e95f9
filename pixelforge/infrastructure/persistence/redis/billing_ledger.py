"""
Redis Billing Ledger

Diamond balances and the append-only transaction log, stored in Redis.

Storage Format:
    - "account:{owner_id}" -> HASH {balance, xp}
    - "ledger:{owner_id}"  -> LIST of JSON LedgerEntry (RPUSH, oldest first)

Business Rules:
    - debit() checks and writes under WATCH on the account hash, so the
      balance can never go negative even with concurrent debits
    - credit() has no upper bound and always succeeds while Redis is up
    - every balance change appends its entry inside the same MULTI/EXEC

The entry/key helpers are also used by RedisJobStore, which needs the
debit or refund to commit together with the job write.
"""

import logging
from typing import Optional

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError

from pixelforge.domain.generation.entities.account import (
    Account,
    LedgerEntry,
    TransactionKind,
)
from pixelforge.domain.shared.exceptions import (
    InsufficientFundsError,
    StoreUnavailableError,
)
from .transactions import execute_watched

logger = logging.getLogger(__name__)


class RedisBillingLedger:
    """
    Billing Ledger backed by Redis hashes and lists.

    Examples:
        >>> ledger = RedisBillingLedger(get_redis_client())
        >>> ledger.open_account("user-1", initial_balance=5)
        Account(owner_id='user-1', balance=5, xp=0)
        >>> ledger.debit("user-1", 3, "Image generation (Flash)", job_id="job-1")
        2
        >>> ledger.credit("user-1", 3, "Refund: backend timeout", TransactionKind.REFUND, "job-1")
        5
    """

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    # ------------------------------------------------------------------
    # Key helpers
    # ------------------------------------------------------------------

    def _get_account_key(self, owner_id: str) -> str:
        return f"account:{owner_id}"

    def _get_entries_key(self, owner_id: str) -> str:
        return f"ledger:{owner_id}"

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if int(amount) <= 0:
            raise ValueError(f"Amount must be a positive integer, got {amount}")

    def read_balance(self, pipe: Pipeline, owner_id: str) -> int:
        """Read balance through a (possibly watching) pipeline."""
        raw = pipe.hget(self._get_account_key(owner_id), "balance")
        return int(raw) if raw else 0

    def queue_entry(self, pipe: Pipeline, entry: LedgerEntry) -> None:
        """
        Queue the balance change and log append of `entry` on a MULTI pipeline.

        Caller is responsible for pipe.multi() and pipe.execute().
        """
        pipe.hincrby(self._get_account_key(entry.account_id), "balance", entry.amount)
        pipe.rpush(self._get_entries_key(entry.account_id), entry.to_json())

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def open_account(self, owner_id: str, initial_balance: int = 0) -> Account:
        if initial_balance < 0:
            raise ValueError("initial_balance cannot be negative")
        key = self._get_account_key(owner_id)
        try:
            pipe = self.redis.pipeline()
            pipe.hsetnx(key, "balance", initial_balance)
            pipe.hsetnx(key, "xp", 0)
            pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError("open_account failed", original_error=e) from e

        account = self.get_account(owner_id)
        logger.info(f"Account {owner_id} ready (balance={account.balance})")
        return account

    def get_account(self, owner_id: str) -> Optional[Account]:
        try:
            data = self.redis.hgetall(self._get_account_key(owner_id))
        except RedisError as e:
            raise StoreUnavailableError("get_account failed", original_error=e) from e
        if not data:
            return None
        return Account(
            owner_id=owner_id,
            balance=int(data.get("balance", 0)),
            xp=int(data.get("xp", 0)),
        )

    def get_balance(self, owner_id: str) -> int:
        account = self.get_account(owner_id)
        return account.balance if account else 0

    # ------------------------------------------------------------------
    # Balance mutations
    # ------------------------------------------------------------------

    def debit(
        self,
        owner_id: str,
        amount: int,
        description: str,
        job_id: Optional[str] = None,
    ) -> int:
        self._validate_amount(amount)
        entry = LedgerEntry(
            account_id=owner_id,
            amount=-amount,
            kind=TransactionKind.CHARGE,
            description=description,
            job_id=job_id,
        )

        def _debit(pipe: Pipeline) -> int:
            balance = self.read_balance(pipe, owner_id)
            if balance < amount:
                raise InsufficientFundsError(owner_id, required=amount, available=balance)
            pipe.multi()
            self.queue_entry(pipe, entry)
            pipe.execute()
            return balance - amount

        new_balance = execute_watched(
            self.redis, [self._get_account_key(owner_id)], _debit, operation="debit"
        )
        logger.info(f"Debited {amount} from {owner_id} (balance={new_balance})")
        return new_balance

    def credit(
        self,
        owner_id: str,
        amount: int,
        description: str,
        kind: TransactionKind = TransactionKind.OTHER,
        job_id: Optional[str] = None,
    ) -> int:
        self._validate_amount(amount)
        if kind is TransactionKind.CHARGE:
            raise ValueError("credit() cannot log a CHARGE entry")
        entry = LedgerEntry(
            account_id=owner_id,
            amount=amount,
            kind=kind,
            description=description,
            job_id=job_id,
        )
        try:
            pipe = self.redis.pipeline()
            self.queue_entry(pipe, entry)
            results = pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError("credit failed", original_error=e) from e

        new_balance = int(results[0])
        logger.info(f"Credited {amount} to {owner_id} as {kind.value} (balance={new_balance})")
        return new_balance

    def award_xp(self, owner_id: str, amount: int) -> int:
        self._validate_amount(amount)
        try:
            return int(self.redis.hincrby(self._get_account_key(owner_id), "xp", amount))
        except RedisError as e:
            raise StoreUnavailableError("award_xp failed", original_error=e) from e

    def get_entries(self, owner_id: str, limit: int = 50) -> list[LedgerEntry]:
        try:
            raw_entries = self.redis.lrange(self._get_entries_key(owner_id), -limit, -1)
        except RedisError as e:
            raise StoreUnavailableError("get_entries failed", original_error=e) from e
        return [LedgerEntry.from_json(raw) for raw in reversed(raw_entries)]
