"""
In-memory fakes of the application ports.

The fakes follow the same contracts as the Redis implementations:
admission and the failure path are single atomic steps, terminal
transitions are conditional on PENDING. A threading.Lock stands in for
Redis WATCH/MULTI/EXEC so concurrency tests exercise real interleavings.
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

import pytest

from pixelforge.domain.generation.entities.account import (
    Account,
    LedgerEntry,
    TransactionKind,
)
from pixelforge.domain.generation.entities.api_key import ApiKey
from pixelforge.domain.generation.entities.job import GenerationJob, JobState
from pixelforge.domain.shared.exceptions import (
    InsufficientFundsError,
    JobAlreadyExistsError,
    NoApiKeyAvailableError,
    UploadError,
)


# ============================================================================
# BILLING LEDGER + JOB STORE
# ============================================================================


class InMemoryLedger:
    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.accounts: dict[str, Account] = {}
        self.entries: dict[str, list[LedgerEntry]] = defaultdict(list)

    def open_account(self, owner_id: str, initial_balance: int = 0) -> Account:
        with self.lock:
            return self.accounts.setdefault(
                owner_id, Account(owner_id=owner_id, balance=initial_balance)
            )

    def get_account(self, owner_id: str) -> Optional[Account]:
        return self.accounts.get(owner_id)

    def get_balance(self, owner_id: str) -> int:
        account = self.accounts.get(owner_id)
        return account.balance if account else 0

    def apply(self, entry: LedgerEntry) -> int:
        with self.lock:
            account = self.open_account(entry.account_id)
            account.balance += entry.amount
            self.entries[entry.account_id].append(entry)
            return account.balance

    def debit(self, owner_id, amount, description, job_id=None) -> int:
        with self.lock:
            balance = self.get_balance(owner_id)
            if balance < amount:
                raise InsufficientFundsError(owner_id, required=amount, available=balance)
            return self.apply(
                LedgerEntry(owner_id, -amount, TransactionKind.CHARGE, description, job_id)
            )

    def credit(self, owner_id, amount, description, kind=TransactionKind.OTHER, job_id=None) -> int:
        return self.apply(LedgerEntry(owner_id, amount, kind, description, job_id))

    def award_xp(self, owner_id: str, amount: int) -> int:
        with self.lock:
            account = self.open_account(owner_id)
            account.xp += amount
            return account.xp

    def get_entries(self, owner_id: str, limit: int = 50) -> list[LedgerEntry]:
        return list(reversed(self.entries[owner_id]))[:limit]

    def entries_for_job(self, job_id: str, kind: TransactionKind) -> list[LedgerEntry]:
        return [
            entry
            for entries in self.entries.values()
            for entry in entries
            if entry.job_id == job_id and entry.kind is kind
        ]


class InMemoryJobStore:
    def __init__(self, ledger: InMemoryLedger) -> None:
        self.ledger = ledger
        self.jobs: dict[str, GenerationJob] = {}
        self.progress: dict[str, list[dict]] = defaultdict(list)

    def create_with_charge(self, job: GenerationJob, charge: LedgerEntry) -> int:
        with self.ledger.lock:
            if job.id in self.jobs:
                raise JobAlreadyExistsError(job.id)
            balance = self.ledger.get_balance(job.owner_id)
            if balance < job.cost:
                raise InsufficientFundsError(job.owner_id, required=job.cost, available=balance)
            balance_after = self.ledger.apply(charge)
            self.jobs[job.id] = job
            return balance_after

    def get(self, job_id: str) -> Optional[GenerationJob]:
        return self.jobs.get(job_id)

    def update_progress(self, job_id: str, text: str) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.is_terminal():
            return False
        job.update_progress(text)
        self.progress[job_id].insert(0, {"message": text})
        return True

    def mark_succeeded(self, job_id: str, result_ref: str) -> bool:
        with self.ledger.lock:
            job = self.jobs.get(job_id)
            if job is None or job.is_terminal():
                return False
            job.mark_succeeded(result_ref)
            return True

    def fail_with_refund(self, job_id: str, reason: str, refund_description: str) -> bool:
        with self.ledger.lock:
            job = self.jobs.get(job_id)
            if job is None or job.is_terminal():
                return False
            job.mark_failed(reason)
            self.ledger.apply(
                LedgerEntry(
                    job.owner_id, job.cost, TransactionKind.REFUND, refund_description, job.id
                )
            )
            return True

    def list_for_owner(self, owner_id: str, limit: int = 20) -> list[GenerationJob]:
        jobs = [job for job in self.jobs.values() if job.owner_id == owner_id]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)[:limit]

    def find_latest_succeeded(self, owner_id: str, since: datetime) -> Optional[GenerationJob]:
        for job in self.list_for_owner(owner_id, limit=1000):
            if job.created_at < since:
                break
            if job.state is JobState.SUCCEEDED and job.result_ref:
                return job
        return None

    def get_progress_history(self, job_id: str) -> list[dict]:
        return list(self.progress[job_id][:10])


# ============================================================================
# WORKER COLLABORATORS
# ============================================================================


class FakeBackend:
    """Returns canned bytes; `fail_on` maps a stage call number to an error."""

    def __init__(self, fail_on: Optional[dict[int, Exception]] = None, output: bytes = b"PNG") -> None:
        self.fail_on = fail_on or {}
        self.output = output
        self.calls: list[dict[str, Any]] = []

    def generate(self, parameters, references, api_key) -> bytes:
        self.calls.append(
            {"parameters": parameters, "references": list(references), "api_key": api_key}
        )
        error = self.fail_on.get(len(self.calls))
        if error is not None:
            raise error
        return self.output + str(len(self.calls)).encode()


class InMemoryBlobStorage:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.blobs: dict[str, bytes] = {}

    def put(self, data: bytes, content_type: str) -> str:
        if self.fail:
            raise UploadError("Blob storage unavailable")
        ref = f"https://cdn.example/{len(self.blobs) + 1}.png"
        self.blobs[ref] = data
        return ref

    def get(self, ref: str) -> bytes:
        if ref not in self.blobs:
            raise FileNotFoundError(ref)
        return self.blobs[ref]


class FakeKeyPool:
    def __init__(self, keys: Optional[list[str]] = None) -> None:
        self.keys = [ApiKey(id=f"k{i}", value=v) for i, v in enumerate(keys or ["secret-a"])]

    def acquire(self) -> ApiKey:
        active = [key for key in self.keys if key.active]
        if not active:
            raise NoApiKeyAvailableError()
        key = min(active, key=lambda k: k.usage_count)
        key.usage_count += 1
        return key

    def add_key(self, value: str, key_id: Optional[str] = None) -> ApiKey:
        key = ApiKey(id=key_id or f"k{len(self.keys)}", value=value)
        self.keys.append(key)
        return key

    def deactivate(self, key_id: str) -> bool:
        for key in self.keys:
            if key.id == key_id and key.active:
                key.active = False
                return True
        return False

    def list_keys(self) -> list[ApiKey]:
        return list(self.keys)


class InMemoryLeases:
    """Leases never expire on their own; `expire` simulates the TTL running out."""

    def __init__(self, lease_ttl: int = 360) -> None:
        self.lease_ttl = lease_ttl
        self.states: dict[str, dict[str, Any]] = {}
        self.holders: dict[str, str] = {}
        self.queued: list[str] = []

    def mark_queued(self, job_id: str) -> None:
        self.queued.append(job_id)
        self.states.setdefault(job_id, {"deliveries": 0})["state"] = "queued"

    def acquire(self, job_id: str, worker_id: str) -> bool:
        state = self.states.setdefault(job_id, {"deliveries": 0})
        state["deliveries"] += 1
        if job_id in self.holders:
            return False
        self.holders[job_id] = worker_id
        state.update(state="in_flight", worker_id=worker_id)
        return True

    def release(self, job_id: str, worker_id: str, outcome: str) -> None:
        if self.holders.get(job_id) == worker_id:
            del self.holders[job_id]
        self.states.setdefault(job_id, {"deliveries": 0}).update(state="done", outcome=outcome)

    def remaining_ttl(self, job_id: str) -> int:
        return self.lease_ttl if job_id in self.holders else 0

    def expire(self, job_id: str) -> None:
        self.holders.pop(job_id, None)

    def get_state(self, job_id: str) -> Optional[dict]:
        state = self.states.get(job_id)
        if state is None:
            return None
        return {**state, "lease_held": job_id in self.holders}


class RecordingPushChannel:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, job_id: str, event: dict[str, Any]) -> bool:
        self.events.append((job_id, event))
        return True

    def types_for(self, job_id: str) -> list[str]:
        return [event["type"] for jid, event in self.events if jid == job_id]


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def job_store(ledger) -> InMemoryJobStore:
    return InMemoryJobStore(ledger)


@pytest.fixture
def leases() -> InMemoryLeases:
    return InMemoryLeases()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def blob_storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def key_pool() -> FakeKeyPool:
    return FakeKeyPool(["secret-a", "secret-b"])


@pytest.fixture
def push_channel() -> RecordingPushChannel:
    return RecordingPushChannel()


@pytest.fixture
def dispatched() -> list[str]:
    """Job ids handed to the worker queue by the use case under test."""
    return []
