"""Bounded retry with exponential backoff for object store calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from assethost.config import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    description: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` up to ``config.attempts`` times.

    The delay starts at ``config.backoff`` and doubles after each failure,
    capped at ``config.max_backoff``. The last exception is re-raised.
    Errors with ``retryable = False`` are re-raised at once.
    """
    attempts = max(config.attempts, 1)
    delay = config.backoff

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt == attempts or not getattr(exc, "retryable", True):
                raise
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                description, attempt, attempts, exc, delay,
            )
            await sleep(delay)
            delay = min(delay * 2, config.max_backoff)

    raise AssertionError("unreachable")
