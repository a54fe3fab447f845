"""
Retry with exponential backoff for async network calls.

One policy object (attempt count, base delay, per-attempt timeout) and one
runner shared by every caller that needs retries.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ar_client.config import client_settings
from ar_client.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 1.0
    timeout: Optional[float] = 12.0

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")

    def delay_after(self, attempt: int) -> float:
        """Backoff before the next try, after failed ``attempt`` (1-based): 1s, 2s, 4s..."""
        return self.base_delay * (2 ** (attempt - 1))

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            attempts=client_settings.FETCH_ATTEMPTS,
            base_delay=client_settings.FETCH_BASE_DELAY,
            timeout=client_settings.FETCH_TIMEOUT,
        )


def always_retry(exc: BaseException) -> bool:
    return True


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    is_retryable: Callable[[BaseException], bool] = always_retry,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or the policy is exhausted.

    A timed-out attempt is cancelled and counts as a failure. Errors the
    predicate rejects propagate immediately. Cancelling the caller stops the
    loop, including during backoff.

    Raises:
        RetryExhaustedError: After ``policy.attempts`` failures, chained to the last one
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, policy.attempts + 1):
        try:
            if policy.timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), policy.timeout)
        except asyncio.TimeoutError as e:
            last_error = e
            logger.warning(f"{description}: attempt {attempt}/{policy.attempts} timed out after {policy.timeout}s")
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e
            logger.warning(f"{description}: attempt {attempt}/{policy.attempts} failed: {e}")

        if attempt < policy.attempts:
            await sleep(policy.delay_after(attempt))

    raise RetryExhaustedError(policy.attempts, last_error) from last_error
