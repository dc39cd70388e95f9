"""
Tests for RedisJobStore.

Covers:
- Admission: debit + CHARGE entry + PENDING job + owner index in one MULTI/EXEC
- Duplicate job id / insufficient funds write nothing
- Conditional terminal transitions (no-op when not PENDING)
- Failure path: FAILED + refund + REFUND entry in one MULTI/EXEC
- Advisory progress (never raises)
- Reads and owner history
"""

import json
from datetime import timedelta

import pytest
from redis.exceptions import RedisError

from pixelforge.domain.generation.entities.account import LedgerEntry, TransactionKind
from pixelforge.domain.generation.entities.job import GenerationJob, JobState, utc_now
from pixelforge.domain.shared.exceptions import (
    InsufficientFundsError,
    JobAlreadyExistsError,
    StoreUnavailableError,
)
from pixelforge.infrastructure.persistence.redis.billing_ledger import (
    RedisBillingLedger,
)
from pixelforge.infrastructure.persistence.redis.job_store import RedisJobStore


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def store(mock_redis):
    return RedisJobStore(mock_redis, RedisBillingLedger(mock_redis), job_ttl_seconds=0)


@pytest.fixture
def charge(pending_job):
    return LedgerEntry(
        pending_job.owner_id,
        -pending_job.cost,
        TransactionKind.CHARGE,
        "Image generation (Flash)",
        pending_job.id,
    )


def _hset_mapping(mock_redis, key):
    for call in mock_redis.hset.call_args_list:
        if call.args and call.args[0] == key:
            return call.kwargs["mapping"]
    raise AssertionError(f"no HSET on {key}")


# ============================================================================
# ADMISSION
# ============================================================================


def test_create_with_charge_commits_job_and_charge(store, mock_redis, pending_job, charge):
    mock_redis.exists.return_value = 0
    mock_redis.hget.return_value = "5"

    balance_after = store.create_with_charge(pending_job, charge)

    assert balance_after == 2
    mock_redis.watch.assert_called_once_with("account:user-1", f"job:{pending_job.id}")
    mock_redis.hincrby.assert_called_once_with("account:user-1", "balance", -3)
    mapping = _hset_mapping(mock_redis, f"job:{pending_job.id}")
    assert mapping["state"] == "pending"
    assert mapping["cost"] == "3"
    mock_redis.zadd.assert_called_once()
    assert mock_redis.zadd.call_args.args[0] == "owner:user-1:jobs"
    mock_redis.expire.assert_not_called()
    mock_redis.execute.assert_called_once()


def test_create_with_charge_sets_ttl_when_configured(mock_redis, pending_job, charge):
    store = RedisJobStore(mock_redis, RedisBillingLedger(mock_redis), job_ttl_seconds=3600)
    mock_redis.exists.return_value = 0
    mock_redis.hget.return_value = "5"

    store.create_with_charge(pending_job, charge)

    mock_redis.expire.assert_called_once_with(f"job:{pending_job.id}", 3600)


def test_create_with_charge_insufficient_funds(store, mock_redis, pending_job, charge):
    mock_redis.exists.return_value = 0
    mock_redis.hget.return_value = "2"

    with pytest.raises(InsufficientFundsError):
        store.create_with_charge(pending_job, charge)

    mock_redis.multi.assert_not_called()
    mock_redis.execute.assert_not_called()


def test_create_with_charge_duplicate_job_id(store, mock_redis, pending_job, charge):
    mock_redis.exists.return_value = 1

    with pytest.raises(JobAlreadyExistsError):
        store.create_with_charge(pending_job, charge)

    mock_redis.execute.assert_not_called()


def test_create_with_charge_rejects_mismatched_charge(store, pending_job):
    wrong = LedgerEntry(pending_job.owner_id, -1, TransactionKind.CHARGE, "x", pending_job.id)

    with pytest.raises(ValueError):
        store.create_with_charge(pending_job, wrong)


def test_create_with_charge_redis_error(store, mock_redis, pending_job, charge):
    mock_redis.exists.return_value = 0
    mock_redis.hget.return_value = "5"
    mock_redis.execute.side_effect = RedisError("connection reset")

    with pytest.raises(StoreUnavailableError):
        store.create_with_charge(pending_job, charge)


# ============================================================================
# TERMINAL TRANSITIONS
# ============================================================================


def test_mark_succeeded_from_pending(store, mock_redis, pending_job):
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()

    assert store.mark_succeeded(pending_job.id, "https://cdn.example/1.png") is True

    mapping = _hset_mapping(mock_redis, f"job:{pending_job.id}")
    assert mapping["state"] == "succeeded"
    assert mapping["result_ref"] == "https://cdn.example/1.png"


def test_mark_succeeded_is_noop_when_terminal(store, mock_redis, pending_job):
    pending_job.mark_succeeded("https://cdn.example/1.png")
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()

    assert store.mark_succeeded(pending_job.id, "https://cdn.example/2.png") is False
    mock_redis.execute.assert_not_called()


def test_mark_succeeded_missing_job(store, mock_redis):
    mock_redis.hgetall.return_value = {}

    assert store.mark_succeeded("missing", "https://cdn.example/1.png") is False


def test_fail_with_refund_commits_failure_and_refund(store, mock_redis, pending_job):
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()

    refunded = store.fail_with_refund(
        pending_job.id, "Stage 'render 1/1' failed: timeout", "Refund: Stage 'render 1/1' f"
    )

    assert refunded is True
    mapping = _hset_mapping(mock_redis, f"job:{pending_job.id}")
    assert mapping["state"] == "failed"
    assert mapping["failure_reason"] == "Stage 'render 1/1' failed: timeout"
    mock_redis.hincrby.assert_called_once_with("account:user-1", "balance", 3)
    key, raw = mock_redis.rpush.call_args.args
    entry = json.loads(raw)
    assert key == "ledger:user-1"
    assert entry["kind"] == "REFUND"
    assert entry["amount"] == 3
    assert entry["job_id"] == pending_job.id
    mock_redis.execute.assert_called_once()


def test_fail_with_refund_twice_refunds_once(store, mock_redis, pending_job):
    """Second call sees FAILED and applies nothing."""
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()
    assert store.fail_with_refund(pending_job.id, "timeout", "Refund: timeout") is True

    pending_job.mark_failed("timeout")
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()
    assert store.fail_with_refund(pending_job.id, "timeout", "Refund: timeout") is False

    assert mock_redis.hincrby.call_count == 1


def test_fail_with_refund_after_success_is_noop(store, mock_redis, pending_job):
    pending_job.mark_succeeded("https://cdn.example/1.png")
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()

    assert store.fail_with_refund(pending_job.id, "late timeout", "Refund: late") is False
    mock_redis.hincrby.assert_not_called()


# ============================================================================
# PROGRESS
# ============================================================================


def test_update_progress_records_history(store, mock_redis, pending_job):
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()

    assert store.update_progress(pending_job.id, "Rendering 1/1") is True

    mapping = _hset_mapping(mock_redis, f"job:{pending_job.id}")
    assert mapping["progress"] == "Rendering 1/1"
    key, raw = mock_redis.lpush.call_args.args
    assert key == f"job:{pending_job.id}:progress"
    assert json.loads(raw)["message"] == "Rendering 1/1"
    mock_redis.ltrim.assert_called_once_with(f"job:{pending_job.id}:progress", 0, 9)


def test_update_progress_never_raises(store, mock_redis, pending_job):
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()
    mock_redis.execute.side_effect = RedisError("down")

    assert store.update_progress(pending_job.id, "Rendering 1/1") is False


def test_update_progress_ignored_after_terminal(store, mock_redis, pending_job):
    pending_job.mark_failed("timeout")
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()

    assert store.update_progress(pending_job.id, "Rendering 1/1") is False
    mock_redis.lpush.assert_not_called()


def test_get_progress_history(store, mock_redis):
    mock_redis.lrange.return_value = [json.dumps({"message": "b"}), json.dumps({"message": "a"})]

    assert [e["message"] for e in store.get_progress_history("job-1")] == ["b", "a"]


def test_get_progress_history_degrades_on_error(store, mock_redis):
    mock_redis.lrange.side_effect = RedisError("down")

    assert store.get_progress_history("job-1") == []


# ============================================================================
# READS
# ============================================================================


def test_get_round_trips_job(store, mock_redis, pending_job):
    mock_redis.hgetall.return_value = pending_job.to_redis_mapping()

    job = store.get(pending_job.id)

    assert job.id == pending_job.id
    assert job.state is JobState.PENDING
    assert job.payload == {"prompt": "fox"}


def test_get_missing_job(store, mock_redis):
    mock_redis.hgetall.return_value = {}

    assert store.get("missing") is None


def test_get_redis_error(store, mock_redis):
    mock_redis.hgetall.side_effect = RedisError("down")

    with pytest.raises(StoreUnavailableError):
        store.get("job-1")


def test_list_for_owner(store, mock_redis, owner_id):
    jobs = [GenerationJob(owner_id=owner_id, payload={}, cost=1) for _ in range(2)]
    mock_redis.zrevrange.return_value = [job.id for job in jobs]
    mock_redis.execute.return_value = [job.to_redis_mapping() for job in jobs]

    listed = store.list_for_owner(owner_id, limit=2)

    assert [job.id for job in listed] == [job.id for job in jobs]
    mock_redis.zrevrange.assert_called_once_with("owner:user-1:jobs", 0, 1)


def test_find_latest_succeeded_skips_pending_and_failed(store, mock_redis, owner_id):
    pending = GenerationJob(owner_id=owner_id, payload={}, cost=1)
    failed = GenerationJob(owner_id=owner_id, payload={}, cost=1)
    failed.mark_failed("timeout")
    done = GenerationJob(owner_id=owner_id, payload={}, cost=1)
    done.mark_succeeded("https://cdn.example/1.png")
    mock_redis.zrevrangebyscore.return_value = [pending.id, failed.id, done.id]
    mock_redis.execute.return_value = [
        pending.to_redis_mapping(),
        failed.to_redis_mapping(),
        done.to_redis_mapping(),
    ]
    since = utc_now() - timedelta(minutes=2)

    found = store.find_latest_succeeded(owner_id, since)

    assert found.id == done.id
    assert mock_redis.zrevrangebyscore.call_args.args[2] == since.timestamp()


def test_find_latest_succeeded_none(store, mock_redis, owner_id):
    mock_redis.zrevrangebyscore.return_value = []

    assert store.find_latest_succeeded(owner_id, utc_now()) is None
