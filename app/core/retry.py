"""
Retry with exponential backoff.

delay before retry n (0-based) = base_delay * 2 ** n, no jitter. Each call
starts its own schedule; after max_retries extra attempts the last error is
re-raised.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delays(max_retries: int, base_delay: float) -> List[float]:
    return [base_delay * (2 ** attempt) for attempt in range(max_retries)]


async def fetch_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    retries = 0
    while True:
        logger.debug("Attempt %d/%d", retries + 1, max_retries + 1)
        try:
            return await operation()
        except retry_on as exc:
            if retries >= max_retries:
                logger.error("Giving up after %d attempts: %s", retries + 1, exc)
                raise
            delay = base_delay * (2 ** retries)
            logger.warning(
                "Fetch failed, retrying in %.2fs (attempt %d/%d): %s",
                delay, retries + 1, max_retries, exc,
            )
            await sleep(delay)
            retries += 1


def call_with_retry(
    operation: Callable[[], T],
    max_retries: int = 3,
    base_delay: float = 1.0,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Blocking twin of fetch_with_retry for synchronous clients."""
    retries = 0
    while True:
        logger.debug("Attempt %d/%d", retries + 1, max_retries + 1)
        try:
            return operation()
        except retry_on as exc:
            if retries >= max_retries:
                logger.error("Giving up after %d attempts: %s", retries + 1, exc)
                raise
            delay = base_delay * (2 ** retries)
            logger.warning(
                "Call failed, retrying in %.2fs (attempt %d/%d): %s",
                delay, retries + 1, max_retries, exc,
            )
            sleep(delay)
            retries += 1
