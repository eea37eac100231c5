"""Retry-with-backoff combinator.

One retry loop shared by every network-facing stage (balance queries,
transaction posts, signature confirmation). Attempt ``n`` (0-based) that
fails waits ``2**n * base_delay`` seconds before the next one, and each
attempt is bounded by ``per_attempt_timeout``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry parameters.

    Attributes:
        max_attempts: Total attempts including the first (>= 1)
        base_delay: Delay after the first failure, doubled per attempt
        per_attempt_timeout: Seconds one attempt may take (None = unbounded)
        max_delay: Upper bound for a single backoff wait
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    per_attempt_timeout: Optional[float] = 10.0
    max_delay: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """Backoff after 0-based attempt ``attempt`` failed."""
        return min(self.max_delay, (2**attempt) * self.base_delay)


def _log_retry(label: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            f"{label} attempt {state.attempt_number}/{policy.max_attempts} failed: "
            f"{exc!r}; retrying in {state.next_action.sleep if state.next_action else 0:.2f}s"
        )

    return before_sleep


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """Run ``operation`` under ``policy``.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Retry bounds
        retry_on: Exception types that trigger another attempt. Per-attempt
            timeouts surface as asyncio.TimeoutError and are always retried.
        label: Name used in log messages

    Returns:
        The first successful result

    Raises:
        The last attempt's exception once the attempt budget is spent, or
        immediately for exceptions outside ``retry_on``.
    """
    retryer = AsyncRetrying(
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=lambda state: policy.delay_for(state.attempt_number - 1),
        retry=retry_if_exception_type(tuple(retry_on) + (asyncio.TimeoutError,)),
        before_sleep=_log_retry(label, policy),
        reraise=True,
    )

    async for attempt in retryer:
        with attempt:
            if policy.per_attempt_timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=policy.per_attempt_timeout)

    # AsyncRetrying either returns from inside the loop or re-raises
    raise RuntimeError(f"{label}: retry loop exited without a result")
