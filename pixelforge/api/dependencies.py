"""
API Dependency Providers

Responsibility:
    Builds the Application Layer objects the routers need (use cases, query
    handlers) on top of the shared Redis pool, and authenticates callers.

Architecture Notes:
    - Part of API Layer (Presentation)
    - Every provider is an async function used through FastAPI Depends(),
      so tests replace them with app.dependency_overrides
    - Authentication: X-API-Key header or "Authorization: Bearer <token>",
      resolved to an owner id by the identity provider
"""

import hmac
import logging
import os
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from redis import Redis
from redis.exceptions import RedisError

from pixelforge.api.schemas.common import error_detail
from pixelforge.application.ports.api_key_pool import ApiKeyPoolProtocol
from pixelforge.application.ports.identity import IdentityProviderProtocol
from pixelforge.application.ports.task_lease import TaskLeaseRegistryProtocol
from pixelforge.application.queries import (
    GetAccountQueryHandler,
    GetJobStatusQueryHandler,
    ListJobsQueryHandler,
    RecoverJobQueryHandler,
)
from pixelforge.application.services import SubmitJobUseCase
from pixelforge.domain.generation.repositories.billing_ledger import (
    BillingLedgerProtocol,
)
from pixelforge.domain.generation.repositories.job_repository import (
    JobRepositoryProtocol,
)
from pixelforge.domain.shared.exceptions import StoreUnavailableError
from pixelforge.infrastructure.persistence.redis import (
    RedisApiKeyPool,
    RedisBillingLedger,
    RedisIdentityProvider,
    RedisJobStore,
    RedisTaskLeaseRegistry,
    get_redis_client,
)

logger = logging.getLogger(__name__)


# ============================================================================
# INFRASTRUCTURE
# ============================================================================


async def get_redis() -> Redis:
    """
    Shared pooled Redis client.

    Raises:
        StoreUnavailableError: Redis unreachable (mapped to 503)
    """
    try:
        return get_redis_client()
    except RedisError as e:
        raise StoreUnavailableError("Job store unavailable", original_error=e) from e


async def get_ledger(redis: Redis = Depends(get_redis)) -> BillingLedgerProtocol:
    return RedisBillingLedger(redis)


async def get_job_store(
    redis: Redis = Depends(get_redis),
    ledger: BillingLedgerProtocol = Depends(get_ledger),
) -> JobRepositoryProtocol:
    return RedisJobStore(redis, ledger)


async def get_leases(redis: Redis = Depends(get_redis)) -> TaskLeaseRegistryProtocol:
    return RedisTaskLeaseRegistry(redis)


async def get_identity_provider(
    redis: Redis = Depends(get_redis),
) -> IdentityProviderProtocol:
    return RedisIdentityProvider(redis)


async def get_api_key_pool(redis: Redis = Depends(get_redis)) -> ApiKeyPoolProtocol:
    return RedisApiKeyPool(redis)


# ============================================================================
# AUTHENTICATION
# ============================================================================


def _extract_token(request: Request) -> Optional[str]:
    token = request.headers.get("X-API-Key")
    if token:
        return token.strip()
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


async def get_current_owner(
    request: Request,
    identity: IdentityProviderProtocol = Depends(get_identity_provider),
) -> str:
    """
    Resolve the caller's owner id.

    Raises:
        HTTPException: 401 when the token is missing or unknown
    """
    token = _extract_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail("UNAUTHORIZED", "Missing API key"),
        )

    owner_id = identity.resolve(token)
    if owner_id is None:
        logger.warning(f"Rejected unknown token on {request.method} {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail("UNAUTHORIZED", "Invalid API key"),
        )
    return owner_id


async def require_admin(request: Request) -> None:
    """
    Guard for admin endpoints: token must equal ADMIN_TOKEN.

    An unset ADMIN_TOKEN disables the admin surface entirely.
    """
    expected = os.getenv("ADMIN_TOKEN")
    token = _extract_token(request)
    if not expected or not token or not hmac.compare_digest(token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_detail("FORBIDDEN", "Admin token required"),
        )


# ============================================================================
# APPLICATION LAYER
# ============================================================================


async def get_submit_job_use_case(
    job_store: JobRepositoryProtocol = Depends(get_job_store),
    ledger: BillingLedgerProtocol = Depends(get_ledger),
    leases: TaskLeaseRegistryProtocol = Depends(get_leases),
) -> SubmitJobUseCase:
    return SubmitJobUseCase(job_store=job_store, ledger=ledger, leases=leases)


async def get_job_status_query_handler(
    job_store: JobRepositoryProtocol = Depends(get_job_store),
    leases: TaskLeaseRegistryProtocol = Depends(get_leases),
) -> GetJobStatusQueryHandler:
    return GetJobStatusQueryHandler(job_store=job_store, leases=leases)


async def get_recover_job_query_handler(
    job_store: JobRepositoryProtocol = Depends(get_job_store),
) -> RecoverJobQueryHandler:
    return RecoverJobQueryHandler(job_store=job_store)


async def get_list_jobs_query_handler(
    job_store: JobRepositoryProtocol = Depends(get_job_store),
) -> ListJobsQueryHandler:
    return ListJobsQueryHandler(job_store=job_store)


async def get_account_query_handler(
    ledger: BillingLedgerProtocol = Depends(get_ledger),
) -> GetAccountQueryHandler:
    return GetAccountQueryHandler(ledger=ledger)
