"""
Tests for the /api/accounts endpoints.

Covers:
- Balance and xp of the caller
- Transaction log (CHARGE negative, REFUND positive)
"""

from fastapi import status

from pixelforge.application.queries import AccountResult, LedgerEntryResult


def test_get_my_account(client, mock_account_handler):
    response = client.get("/api/accounts/me")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["owner_id"] == "user-1"
    assert data["balance"] == 7
    assert data["xp"] == 20

    query = mock_account_handler.handle.call_args.args[0]
    assert query.include_entries is False


def test_get_my_transactions(client, mock_account_handler, sample_job_id):
    mock_account_handler.handle.return_value = AccountResult(
        owner_id="user-1",
        balance=5,
        xp=0,
        entries=[
            LedgerEntryResult(
                id="e2",
                amount=3,
                kind="REFUND",
                description="Refund: Stage 'render 1/1' failed: timeout",
                job_id=sample_job_id,
                created_at="2026-10-18T12:01:00+00:00",
            ),
            LedgerEntryResult(
                id="e1",
                amount=-3,
                kind="CHARGE",
                description="Image generation (Flash)",
                job_id=sample_job_id,
                created_at="2026-10-18T12:00:00+00:00",
            ),
        ],
    )

    response = client.get("/api/accounts/me/transactions", params={"limit": 10})

    assert response.status_code == status.HTTP_200_OK
    entries = response.json()
    assert [entry["amount"] for entry in entries] == [3, -3]
    assert [entry["kind"] for entry in entries] == ["REFUND", "CHARGE"]

    query = mock_account_handler.handle.call_args.args[0]
    assert query.include_entries is True
    assert query.limit == 10
