"""
Mirror Context — Shared collaborators for provisioning and mirroring.

Bundles the configuration store, the process-wide rate limiter, the retry
policy, and the factory that turns an access token into a gateway. Every
remote call made by the pipeline goes through ``call()``: queued on the
limiter, wrapped by the retry controller.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from ..config.store import ACCESS_TOKEN_KEY, ConfigStore, CredentialStore
from ..errors import ConfigurationError
from ..gateway import Gateway, GitHubApiGateway
from ..reliability import RateLimiter, RetryPolicy, with_retry

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[str], Gateway]
Notifier = Callable[[str, str], None]
Prompt = Callable[[str], Optional[str]]


def log_notifier(level: str, message: str) -> None:
    """Default notifier: route user-facing messages to the log."""
    logger.log(logging.getLevelName(level.upper()), message)


class MirrorContext:
    """Collaborators shared by one process."""

    def __init__(
        self,
        config: ConfigStore,
        gateway_factory: GatewayFactory = GitHubApiGateway,
        limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        notifier: Optional[Notifier] = None,
        prompt: Optional[Prompt] = None,
    ):
        self.config = config
        self.gateway_factory = gateway_factory
        self.limiter = limiter or RateLimiter(min_delay=config.settings().min_request_delay)
        self.retry_policy = retry_policy or RetryPolicy()
        self.sleep = sleep
        self.notifier = notifier or log_notifier
        self.prompt = prompt

    def notify(self, level: str, message: str) -> None:
        self.notifier(level, message)

    @staticmethod
    def require_token(credentials: CredentialStore) -> str:
        token = credentials.get(ACCESS_TOKEN_KEY)
        if not token:
            raise ConfigurationError("No access token found. Please authenticate.")
        return token

    @asynccontextmanager
    async def session(self, credentials: CredentialStore) -> AsyncIterator[Gateway]:
        """Open a gateway for the stored access token."""
        gateway = self.gateway_factory(self.require_token(credentials))
        try:
            yield gateway
        finally:
            await gateway.aclose()

    async def call(
        self,
        operation: Callable[[], Awaitable[Any]],
        description: str = "remote call",
    ) -> Any:
        """Run ``operation`` through the rate limiter with retries."""
        return await with_retry(
            lambda: self.limiter.enqueue(operation),
            policy=self.retry_policy,
            sleep=self.sleep,
            description=description,
        )
