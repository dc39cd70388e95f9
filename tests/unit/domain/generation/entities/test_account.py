"""Tests for Account, LedgerEntry and ApiKey entities."""

from pixelforge.domain.generation.entities.account import LedgerEntry, TransactionKind
from pixelforge.domain.generation.entities.api_key import ApiKey


def test_ledger_entry_json_round_trip():
    entry = LedgerEntry("user-1", 3, TransactionKind.REFUND, "Refund: timeout", "job-1")

    restored = LedgerEntry.from_json(entry.to_json())

    assert restored == entry


def test_ledger_entry_to_dict():
    entry = LedgerEntry("user-1", -3, TransactionKind.CHARGE, "Image generation (Flash)")

    data = entry.to_dict()

    assert data["kind"] == "CHARGE"
    assert data["amount"] == -3
    assert data["job_id"] is None


def test_api_key_masks_secret():
    assert ApiKey(id="k1", value="sk-live-123456").masked() == "**********3456"
    assert ApiKey(id="k2", value="abc").masked() == "****"


def test_api_key_repr_hides_secret():
    assert "sk-live" not in repr(ApiKey(id="k1", value="sk-live-123456"))
