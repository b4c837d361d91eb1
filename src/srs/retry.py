from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from src.srs.errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    timeout: Optional[float] = 5.0,
    max_retries: int = 3,
    backoff_seconds: float = 0.2,
    label: str = "store call",
) -> T:
    """
    Run `operation` with a per-attempt timeout and bounded retries.

    Only transient failures (`StoreUnavailable`, timeouts) are retried. Other
    errors, including `NotFound` and `ValidationError`, propagate at once.
    `operation` is a zero-argument factory so every retry gets a fresh
    coroutine.
    """
    attempts = max(1, max_retries)
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except (StoreUnavailable, asyncio.TimeoutError) as e:
            last_error = e
            if attempt >= attempts:
                break
            delay = backoff_seconds * (2 ** (attempt - 1)) + random.uniform(0, backoff_seconds)
            logger.warning(
                "%s failed (attempt %s/%s): %r; retrying in %.2fs",
                label,
                attempt,
                attempts,
                e,
                delay,
            )
            await asyncio.sleep(delay)

    logger.error("%s failed after %s attempts: %r", label, attempts, last_error)
    if isinstance(last_error, StoreUnavailable):
        raise last_error
    raise StoreUnavailable(f"{label} timed out") from last_error
