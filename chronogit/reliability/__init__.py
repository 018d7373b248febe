"""
Reliability Module — Request throttling and retry with backoff.
"""

from .rate_limiter import RateLimiter
from .retry import RetryPolicy, is_retryable, with_retry

__all__ = [
    "RateLimiter",
    "RetryPolicy",
    "is_retryable",
    "with_retry",
]
