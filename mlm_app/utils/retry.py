"""
Retry logic for transient store failures.

Bounded exponential backoff around remote reads. Only transient errors are
retried; everything else propagates on the first failure.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

from mlm_app.config.constants import STORE_MAX_RETRIES, STORE_RETRY_BASE_DELAY
from mlm_app.utils.exceptions import TransientStoreError, is_transient

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before the retry following `attempt` (0-based): base * 2**attempt."""
    return base_delay * (2 ** attempt)


async def call_with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    max_attempts: int = STORE_MAX_RETRIES,
    base_delay: float = STORE_RETRY_BASE_DELAY,
    operation_name: str = "store call",
    on_retry: Callable[[], Awaitable[Any]] | None = None,
) -> T:
    """
    Execute an async call with retry logic.

    Args:
        coro_factory: Factory function that returns a fresh coroutine
        max_attempts: Maximum number of attempts (>= 1)
        base_delay: Base delay in seconds for exponential backoff
        operation_name: Operation name for logging
        on_retry: Optional hook awaited before every retry (e.g. rollback)

    Returns:
        Result of the call

    Raises:
        TransientStoreError: If all attempts fail with transient errors
        Exception: Any non-transient error, unchanged
    """
    last_error: BaseException | None = None

    for attempt in range(max_attempts):
        try:
            result = await coro_factory()

            if attempt > 0:
                logger.success(
                    f"{operation_name} succeeded on attempt {attempt + 1}"
                )

            return result

        except Exception as e:
            if not is_transient(e):
                raise

            last_error = e

            if attempt < max_attempts - 1:
                delay = backoff_delay(attempt, base_delay)
                logger.warning(
                    f"{operation_name} failed on attempt {attempt + 1}/{max_attempts}: {e}. "
                    f"Retrying in {delay}s..."
                )
                if on_retry is not None:
                    await on_retry()
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"{operation_name} failed after {max_attempts} attempts: {e}"
                )

    raise TransientStoreError(
        f"{operation_name} failed after {max_attempts} attempts: {last_error}",
        operation=operation_name,
    ) from last_error
