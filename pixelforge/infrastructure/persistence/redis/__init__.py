"""
Redis Infrastructure Module

Redis-based stores: jobs, billing, task leases, API keys and identity.

Exports:
    - RedisJobStore: Job lifecycle records (implements JobRepositoryProtocol)
    - RedisBillingLedger: Balances and transaction log (implements BillingLedgerProtocol)
    - RedisTaskLeaseRegistry: Delivery counter and worker leases
    - RedisApiKeyPool: Least-used generation API keys
    - RedisIdentityProvider: Token -> owner id
    - get_redis_client / get_async_redis_client: Pooled clients
    - health_check / close_connections
"""

from .api_key_pool import RedisApiKeyPool
from .billing_ledger import RedisBillingLedger
from .connection import (
    close_connections,
    get_async_redis_client,
    get_redis_client,
    health_check,
)
from .identity import RedisIdentityProvider
from .job_store import RedisJobStore
from .task_lease import RedisTaskLeaseRegistry, TaskState

__all__ = [
    "RedisApiKeyPool",
    "RedisBillingLedger",
    "RedisIdentityProvider",
    "RedisJobStore",
    "RedisTaskLeaseRegistry",
    "TaskState",
    "get_redis_client",
    "get_async_redis_client",
    "health_check",
    "close_connections",
]
