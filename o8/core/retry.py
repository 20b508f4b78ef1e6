"""
O8 Retry Combinator

Runs an async operation under an attempt budget with exponential backoff.

Failure classes:
    - retryable: attempt timeouts, transport errors (connection refused,
      reset, read timeout) and HTTP 429/500/502/503/504
    - terminal: everything else (other 4xx responses, malformed payloads,
      validation problems) since repeating the call cannot fix them

Every attempt is bound by ``asyncio.wait_for``; a timed-out attempt consumes
one unit of the budget. Before retry ``n`` (0-based) the combinator sleeps
``base_delay * 2**n`` seconds.

Usage:
    >>> from o8.core.retry import RetryPolicy, retry_async
    >>>
    >>> policy = RetryPolicy(max_attempts=3, base_delay=1.0)
    >>> cid = await retry_async(lambda: client.post_once(data), policy, operation_name="publish")
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
import structlog

from o8.core.errors import NotFoundError, StoreError


logger = structlog.get_logger(__name__)

T = TypeVar("T")

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget and backoff schedule.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Seconds slept before the first retry; doubles each time
        attempt_timeout: Seconds allowed for a single attempt
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    attempt_timeout: float = 30.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, retry_index: int) -> float:
        """Backoff before retry ``retry_index`` (0-based)."""
        return self.base_delay * (2 ** retry_index)


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether a failure is transient.

    Args:
        error: Exception raised by one attempt

    Returns:
        bool: True for timeouts, transport errors and retryable HTTP statuses
    """
    if isinstance(error, asyncio.TimeoutError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRY_STATUS_CODES
    return isinstance(error, httpx.TransportError)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    operation_name: str = "operation"
) -> T:
    """
    Run ``operation`` until it succeeds, fails terminally or the budget runs out.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per attempt
        policy: Attempt budget, backoff and per-attempt timeout
        sleep: Backoff sleeper (replaceable in tests)
        operation_name: Label used in log events and error messages

    Returns:
        The operation's result

    Raises:
        NotFoundError: Propagated as-is; a missing object is not a store failure
        StoreError: On a terminal failure or once the budget is exhausted,
            carrying the last cause and the number of attempts made
    """
    last_error: Optional[BaseException] = None

    for attempt in range(policy.max_attempts):
        try:
            return await asyncio.wait_for(operation(), timeout=policy.attempt_timeout)
        except NotFoundError:
            raise
        except (asyncio.TimeoutError, httpx.HTTPError, ValueError, KeyError) as e:
            last_error = e
            if not is_retryable(e):
                logger.error(
                    "Terminal store failure",
                    operation=operation_name,
                    attempt=attempt + 1,
                    error=repr(e),
                )
                raise StoreError(
                    f"{operation_name} failed: {e}",
                    cause=e,
                    attempts=attempt + 1,
                ) from e

            if attempt < policy.max_attempts - 1:
                delay = policy.delay_for(attempt)
                logger.warning(
                    "Retrying store operation",
                    operation=operation_name,
                    attempt=attempt + 1,
                    max_attempts=policy.max_attempts,
                    delay=delay,
                    error=repr(e),
                )
                await sleep(delay)

    logger.error(
        "Store operation exhausted retries",
        operation=operation_name,
        attempts=policy.max_attempts,
        error=repr(last_error),
    )
    raise StoreError(
        f"{operation_name} failed after {policy.max_attempts} attempts",
        cause=last_error,
        attempts=policy.max_attempts,
    ) from last_error
