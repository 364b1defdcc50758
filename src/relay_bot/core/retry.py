"""
Bounded retry combinator for async operations.

The AI call is the only operation retried by the relay. The policy is a fixed
number of sequential attempts with no backoff, each optionally bounded by a
timeout. The outcome is returned as a RetryResult rather than raised, so the
caller decides whether a final failure propagates.

Example:
    result = await retry_async(
        lambda: generator.generate_reply(chat_id, text),
        max_attempts=3,
        timeout=60.0,
    )
    if result.ok:
        reply = result.value
    else:
        logger.error(f"Gave up after {result.attempts} attempts: {result.error}")
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    """Outcome of a retried operation: either a value or the last error."""

    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the last error."""
        if self.error is not None:
            raise self.error
        return self.value


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    timeout: Optional[float] = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> RetryResult[T]:
    """
    Run an async operation up to max_attempts times.

    Attempts are sequential and immediate. A timed-out attempt counts as a
    failure. Exceptions outside retry_on propagate at once.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Upper bound on attempts (>= 1)
        timeout: Per-attempt timeout in seconds, None for no limit
        retry_on: Exception types that count as a retryable failure
        label: Name used in log messages

    Returns:
        RetryResult with the first successful value, or the last error

    Raises:
        ValueError: If max_attempts < 1
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            if timeout is not None:
                value = await asyncio.wait_for(operation(), timeout=timeout)
            else:
                value = await operation()
            if attempt > 1:
                logger.info(f"{label} succeeded on attempt {attempt}/{max_attempts}")
            return RetryResult(value=value, attempts=attempt)
        except asyncio.TimeoutError as e:
            last_error = e
            logger.warning(
                f"{label} timed out after {timeout}s (attempt {attempt}/{max_attempts})"
            )
        except retry_on as e:
            last_error = e
            logger.warning(f"{label} failed (attempt {attempt}/{max_attempts}): {e}")

    return RetryResult(error=last_error, attempts=max_attempts)
