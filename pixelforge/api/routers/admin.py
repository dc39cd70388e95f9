"""
API Router for the Generation API Key Pool

Responsibility:
    Admin operations on the pool of backend credentials the workers draw
    from: add a key, deactivate a key, list keys with usage counters.

Architecture Notes:
    - Part of API Layer (Presentation)
    - Guarded by require_admin (ADMIN_TOKEN)
    - Secrets are never returned; responses carry a masked value
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from pydantic import BaseModel, Field

from pixelforge.api.dependencies import get_api_key_pool, require_admin
from pixelforge.api.schemas.common import ErrorResponse, error_detail
from pixelforge.application.ports.api_key_pool import ApiKeyPoolProtocol
from pixelforge.domain.generation.entities.api_key import ApiKey

logger = logging.getLogger(__name__)


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================


class AddApiKeyRequest(BaseModel):
    """
    Attributes:
        value: Secret sent to the generation backend
        key_id: Optional stable identifier (generated when omitted)
    """

    value: str = Field(min_length=1, max_length=512)
    key_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class ApiKeyResponse(BaseModel):
    id: str
    masked_value: str
    usage_count: int = Field(ge=0)
    active: bool

    @classmethod
    def from_key(cls, key: ApiKey) -> "ApiKeyResponse":
        return cls(
            id=key.id,
            masked_value=key.masked(),
            usage_count=key.usage_count,
            active=key.active,
        )


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================


router = APIRouter(
    prefix="/admin/api-keys",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={
        403: {"model": ErrorResponse, "description": "Forbidden - Admin token required"},
        503: {"model": ErrorResponse, "description": "Service Unavailable"},
    },
)


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiKeyResponse,
    summary="Add a key to the pool",
)
async def add_api_key(
    request: AddApiKeyRequest,
    pool: ApiKeyPoolProtocol = Depends(get_api_key_pool),
) -> ApiKeyResponse:
    key = pool.add_key(request.value, key_id=request.key_id)
    logger.info(f"API key {key.id} added to pool")
    return ApiKeyResponse.from_key(key)


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    response_model=list[ApiKeyResponse],
    summary="List pool keys with usage counters",
)
async def list_api_keys(
    pool: ApiKeyPoolProtocol = Depends(get_api_key_pool),
) -> list[ApiKeyResponse]:
    return [ApiKeyResponse.from_key(key) for key in pool.list_keys()]


@router.delete(
    "/{key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Deactivate a key",
    responses={404: {"model": ErrorResponse, "description": "Not Found - Unknown key"}},
)
async def deactivate_api_key(
    key_id: str = Path(min_length=1, max_length=64),
    pool: ApiKeyPoolProtocol = Depends(get_api_key_pool),
) -> Response:
    if not pool.deactivate(key_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail(
                "API_KEY_NOT_FOUND", f"No active key {key_id}", {"key_id": key_id}
            ),
        )
    logger.info(f"API key {key_id} deactivated")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
