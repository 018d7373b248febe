"""
Retry Controller — Bounded retries with two-tier backoff.

- Rate-limit failures wait a long fixed cooldown before the next attempt.
- Any other retryable failure waits ``retry_delay * attempt`` (linear).
- Failures tagged non-retryable (configuration, validation, not-found)
  propagate immediately.

The controller keeps no state between calls; each ``with_retry`` invocation
starts its own attempt counter.

## Usage

    from chronogit.reliability.retry import RetryPolicy, with_retry

    commits = await with_retry(lambda: gateway.list_commits("alice", "proj", 10))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import MirrorError, RateLimitError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
RETRY_DELAY = 1.0
RATE_LIMIT_COOLDOWN = 60.0


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt cap and backoff timings (seconds)."""

    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY
    rate_limit_cooldown: float = RATE_LIMIT_COOLDOWN

    def delay_for(self, error: Exception, attempt: int) -> float:
        """Backoff before the attempt following failed attempt ``attempt`` (1-based)."""
        if isinstance(error, RateLimitError):
            return self.rate_limit_cooldown
        return self.retry_delay * attempt


DEFAULT_POLICY = RetryPolicy()


def is_retryable(error: Exception) -> bool:
    """Untagged exceptions count as transient."""
    if isinstance(error, MirrorError):
        return error.retryable
    return True


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` up to ``policy.max_retries`` times.

    Returns the first successful result. Re-raises the last error once all
    attempts fail.
    """
    policy = policy or DEFAULT_POLICY
    last_error: Optional[Exception] = None

    for attempt in range(1, policy.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if not is_retryable(e):
                raise

            if attempt >= policy.max_retries:
                break

            delay = policy.delay_for(e, attempt)
            hint = ""
            retry_after = getattr(e, "retry_after", None)
            if retry_after is not None:
                hint = f" (server asked for {retry_after:.0f}s)"
            logger.warning(
                f"[retry] {description} failed (attempt {attempt}/{policy.max_retries}): "
                f"{e}; retrying in {delay:.0f}s{hint}",
                extra={"attempt": attempt},
            )
            await sleep(delay)

    if last_error is not None:
        logger.error(f"[retry] {description} failed after {policy.max_retries} attempts: {last_error}")
        raise last_error

    raise RetryExhaustedError(f"{description} failed after retries")
