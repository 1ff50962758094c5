"""
Retry-with-backoff wrapper shared by every upstream call.

Failures are retried with exponential backoff plus a small random jitter so that concurrent
callers hitting the same outage do not retry in lock-step.  Authentication problems are never
retried: waiting will not fix a bad key.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    TypeVar,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_AUTH_MARKERS = ("401", "403", "api key", "authentication", "unauthorized", "forbidden")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters.  Delays are in seconds."""

    retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    factor: float = 2.0
    jitter: float = 0.2


def is_auth_error(exc: BaseException) -> bool:
    """
    Return True if *exc* signals an authentication or key problem.

    An explicit HTTP status of 401/403 on the exception wins; otherwise the message is
    searched for the usual markers.
    """
    status = getattr(exc, "status", None)
    if status in (401, 403):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _AUTH_MARKERS)


async def with_retry(
    operation: Callable[[], Awaitable[T]], config: RetryConfig | None = None
) -> T:
    """
    Await *operation* until it succeeds or the retry budget is spent.

    Parameters
    ----------
    operation:
        Zero-argument callable returning a fresh awaitable on every invocation.
    config:
        Backoff parameters; :class:`RetryConfig` defaults when omitted.

    Returns
    -------
    T
        Whatever the first successful invocation returned.

    Raises
    ------
    Exception
        Auth-class failures immediately; anything else once ``retries`` retries have failed.
    """
    cfg = config or RetryConfig()
    attempt = 0
    delay = cfg.initial_delay

    while True:
        try:
            return await operation()
        except Exception as exc:  # pylint: disable=broad-except
            attempt += 1

            if is_auth_error(exc):
                raise

            if attempt > cfg.retries:
                logger.error("Operation failed after %d attempts: %s", attempt, exc)
                raise

            wait = min(delay + random.uniform(0, cfg.jitter), cfg.max_delay)
            logger.warning(
                "Attempt %d failed (%s). Retrying in %dms...", attempt, exc, round(wait * 1000)
            )
            await asyncio.sleep(wait)
            delay *= cfg.factor
