"""Capped exponential backoff for the batch AI calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from kazilens.config import Config
from kazilens.errors import QuotaExceeded, RateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    retries: Optional[int] = None,
    delay_ms: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run fn, retrying only on rate limiting.

    With the defaults that is one call plus up to 3 retries after 1s, 2s and 4s.
    Raises QuotaExceeded once the retries are spent; every other error propagates untouched.
    """
    retries = Config.RETRY_ATTEMPTS if retries is None else retries
    delay = (Config.RETRY_BASE_DELAY_MS if delay_ms is None else delay_ms) / 1000.0

    retries_left = retries
    while True:
        try:
            return await fn()
        except RateLimited as e:
            if retries_left <= 0:
                logger.error("Quota exceeded after %d retries: %s", retries, e)
                raise QuotaExceeded() from e
            logger.warning("Quota exceeded. Retrying in %dms... (%d retries left)", int(delay * 1000), retries_left)
            await sleep(delay)
            delay *= 2
            retries_left -= 1
