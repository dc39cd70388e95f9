"""
Redis Connection Management.

Shared connection pool for every Redis-backed component: job store,
billing ledger, task leases, API key pool, identity lookup and the push
channel publisher.

Responsibility:
    - Process-wide connection pool (thread-safe lazy singleton)
    - PING on checkout with exponential backoff retry
    - Async client factory for pub/sub subscribers

Configuration (environment):
    - REDIS_HOST / REDIS_PORT / REDIS_DB: server location (localhost:6379/0)
    - REDIS_MAX_CONNECTIONS: pool size (10)
    - REDIS_TIMEOUT: socket timeouts in seconds (5)
    - REDIS_RETRY_ATTEMPTS: PING attempts before giving up (3)
    - REDIS_URL: used by get_async_redis_client() when no url is given

Error Handling:
    - ConnectionError / TimeoutError: retried with 1s, 2s, 4s... backoff
    - RedisError: raised once all attempts are exhausted
    - health_check(): never raises, returns False instead
"""

import logging
import os
import threading
import time
from typing import Optional

import redis.asyncio as aioredis
from dotenv import load_dotenv
from redis import ConnectionPool, Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

load_dotenv()

logger = logging.getLogger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_pool_lock = threading.Lock()


def _build_pool(
    host: str, port: int, db: int, max_connections: int, timeout: int
) -> ConnectionPool:
    logger.info(
        f"Creating Redis connection pool: host={host}, port={port}, db={db}, "
        f"max_connections={max_connections}, timeout={timeout}s"
    )
    return ConnectionPool(
        host=host,
        port=port,
        db=db,
        max_connections=max_connections,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
        socket_keepalive=True,
        decode_responses=True,
    )


def get_redis_client(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    max_connections: Optional[int] = None,
    timeout: Optional[int] = None,
) -> Redis:
    """
    Get a pooled Redis client, verifying the connection with PING.

    The pool is created on first call and reused afterwards; arguments only
    take effect on that first call.

    Args:
        host: Redis hostname (default REDIS_HOST or "localhost")
        port: Redis port (default REDIS_PORT or 6379)
        db: Database number (default REDIS_DB or 0)
        max_connections: Pool size (default REDIS_MAX_CONNECTIONS or 10)
        timeout: Socket timeout seconds (default REDIS_TIMEOUT or 5)

    Returns:
        Redis client bound to the shared pool (decode_responses=True)

    Raises:
        RedisError: If PING fails after all retry attempts

    Examples:
        >>> client = get_redis_client()
        >>> client.hget("account:user-1", "balance")
        '12'
    """
    global _redis_pool

    if _redis_pool is None:
        with _pool_lock:
            if _redis_pool is None:
                _redis_pool = _build_pool(
                    host=host or os.getenv("REDIS_HOST", "localhost"),
                    port=port or int(os.getenv("REDIS_PORT", "6379")),
                    db=db if db is not None else int(os.getenv("REDIS_DB", "0")),
                    max_connections=max_connections
                    or int(os.getenv("REDIS_MAX_CONNECTIONS", "10")),
                    timeout=timeout or int(os.getenv("REDIS_TIMEOUT", "5")),
                )

    client = Redis(connection_pool=_redis_pool)

    retry_attempts = int(os.getenv("REDIS_RETRY_ATTEMPTS", "3"))
    last_error: Optional[Exception] = None

    for attempt in range(retry_attempts):
        try:
            client.ping()
            logger.debug(f"Redis connection established (attempt {attempt + 1})")
            return client
        except (ConnectionError, TimeoutError) as e:
            last_error = e
            if attempt < retry_attempts - 1:
                delay = 2**attempt
                logger.warning(
                    f"Redis connection failed (attempt {attempt + 1}/{retry_attempts}): {e}. "
                    f"Retrying in {delay}s..."
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"Redis connection failed after {retry_attempts} attempts: {e}"
                )

    raise RedisError(
        f"Failed to connect to Redis after {retry_attempts} attempts. "
        f"Last error: {last_error}"
    )


def get_async_redis_client(url: Optional[str] = None) -> aioredis.Redis:
    """
    Create an asyncio Redis client (used for pub/sub subscriptions).

    Args:
        url: Redis URL (default REDIS_URL, else built from REDIS_HOST/REDIS_PORT)
    """
    redis_url = url or os.getenv("REDIS_URL") or (
        f"redis://{os.getenv('REDIS_HOST', 'localhost')}:{os.getenv('REDIS_PORT', '6379')}"
        f"/{os.getenv('REDIS_DB', '0')}"
    )
    return aioredis.from_url(redis_url, decode_responses=True)


def health_check() -> bool:
    """
    Check Redis health with PING. Never raises.

    Returns:
        True if Redis answered PING, False otherwise
    """
    try:
        if get_redis_client().ping():
            logger.debug("Redis health check: OK")
            return True
        logger.warning("Redis health check: PING returned False")
        return False
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return False


def close_connections() -> None:
    """
    Disconnect the shared pool and reset the singleton.

    Safe to call multiple times; used on API shutdown and in tests.
    """
    global _redis_pool

    with _pool_lock:
        if _redis_pool is None:
            logger.debug("Redis connection pool already closed or not initialized")
            return

        logger.info("Closing Redis connection pool")
        try:
            _redis_pool.disconnect()
        except RedisError as e:
            logger.error(f"Error closing Redis connection pool: {e}")
        finally:
            _redis_pool = None
