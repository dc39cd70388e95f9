"""
Optimistic Redis transactions (WATCH / MULTI / EXEC).

Every read-check-write sequence in the Redis stores goes through
execute_watched(): the body reads watched keys in immediate mode, decides,
then queues its writes after pipe.multi() and calls pipe.execute(). If a
watched key changes in between, EXEC aborts with WatchError and the whole
body is retried, so the check always sees the state it writes against.
"""

import logging
import os
from typing import Callable, Sequence, TypeVar

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError, WatchError

from pixelforge.domain.shared.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = int(os.getenv("ADMISSION_MAX_RETRIES", "10"))


def execute_watched(
    redis: Redis,
    watch_keys: Sequence[str],
    body: Callable[[Pipeline], T],
    operation: str,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> T:
    """
    Run `body` under WATCH on `watch_keys`, retrying on concurrent modification.

    Args:
        redis: Redis client
        watch_keys: Keys whose modification must abort the transaction
        body: Callable receiving the watching pipeline; returns the result
        operation: Name used in logs and error messages
        max_retries: Attempts before giving up

    Returns:
        Whatever `body` returned on the successful attempt

    Raises:
        StoreUnavailableError: Redis failed or contention never settled
        DomainException: Propagated unchanged from `body`
    """
    pipe = redis.pipeline()
    try:
        for attempt in range(1, max_retries + 1):
            try:
                pipe.watch(*watch_keys)
                return body(pipe)
            except WatchError:
                logger.debug(
                    f"{operation}: watched keys changed, retrying "
                    f"(attempt {attempt}/{max_retries})"
                )
                pipe.reset()
        raise StoreUnavailableError(
            f"{operation} aborted after {max_retries} concurrent modification retries"
        )
    except RedisError as e:
        logger.error(f"Redis error during {operation}: {e}")
        raise StoreUnavailableError(f"{operation} failed", original_error=e) from e
    finally:
        pipe.reset()
