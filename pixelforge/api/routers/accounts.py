"""
API Router for Accounts

Read-only view of the caller's diamond balance, xp and transaction log.
Balances change only through admission (CHARGE) and the worker failure
path (REFUND).
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from pixelforge.api.dependencies import get_account_query_handler, get_current_owner
from pixelforge.api.schemas.common import ErrorResponse
from pixelforge.application.queries import (
    AccountResult,
    GetAccountQuery,
    GetAccountQueryHandler,
    LedgerEntryResult,
)

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing API key"},
        503: {"model": ErrorResponse, "description": "Service Unavailable"},
    },
)


@router.get(
    "/me",
    status_code=status.HTTP_200_OK,
    response_model=AccountResult,
    summary="Get the caller's balance and xp",
)
async def get_my_account(
    owner_id: str = Depends(get_current_owner),
    handler: GetAccountQueryHandler = Depends(get_account_query_handler),
) -> AccountResult:
    return await handler.handle(GetAccountQuery(owner_id=owner_id))


@router.get(
    "/me/transactions",
    status_code=status.HTTP_200_OK,
    response_model=list[LedgerEntryResult],
    summary="Get the caller's transaction log",
    description="Newest first. CHARGE entries are negative, REFUND entries positive.",
)
async def get_my_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    owner_id: str = Depends(get_current_owner),
    handler: GetAccountQueryHandler = Depends(get_account_query_handler),
) -> list[LedgerEntryResult]:
    result = await handler.handle(
        GetAccountQuery(owner_id=owner_id, include_entries=True, limit=limit)
    )
    return result.entries
