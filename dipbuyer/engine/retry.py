"""
Bounded fixed-delay retry for async operations.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from ..utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 2.0,
    description: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Run an async operation until it succeeds or attempts run out.

    The delay between attempts is fixed, and there is no wait after the
    last attempt. Cancellation is not retried.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        attempts: Total attempts, at least 1
        delay: Seconds to wait between attempts
        description: Name used in log lines
        sleep: Awaitable sleep function, asyncio.sleep by default

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The last attempt's error once all attempts failed
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    sleep = sleep or asyncio.sleep
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.warning(
                "retry_attempt_failed",
                operation=description,
                attempt=attempt,
                max_attempts=attempts,
                error=str(e),
            )

        if attempt < attempts:
            await sleep(delay)

    logger.warning(
        "retry_exhausted",
        operation=description,
        attempts=attempts,
        error=str(last_error),
    )
    raise last_error
