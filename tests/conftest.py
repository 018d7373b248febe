"""
Shared fixtures for the mirroring pipeline tests.

Provides an in-memory gateway, in-memory stores, and a mirror context whose
rate limiter and backoff sleeps never actually wait.
"""

from __future__ import annotations

import asyncio
from typing import List, Tuple

import pytest

from chronogit.config.store import ConfigStore, CredentialStore
from chronogit.gateway.memory import InMemoryGateway
from chronogit.mirror.context import MirrorContext
from chronogit.models import CommitRecord
from chronogit.reliability import RateLimiter


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Monotonic clock advanced only by sleeps and simulated work."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class Notes:
    """Collects (level, message) notifications."""

    def __init__(self):
        self.items: List[Tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.items.append((level, message))

    @property
    def last(self) -> Tuple[str, str]:
        return self.items[-1]


def make_commit(sha: str, message: str = "Fix things", repo: str = "alice/proj") -> CommitRecord:
    """Build a commit record with predictable fields."""
    return CommitRecord(
        sha=sha,
        message=message,
        author_date="2024-05-01T12:00:00Z",
        source_url=f"https://github.com/{repo}/commit/{sha}",
    )


@pytest.fixture(autouse=True)
def _no_ambient_tokens(monkeypatch):
    """Tokens from the developer's shell must not leak into tests."""
    monkeypatch.delenv("CHRONOGIT_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def gateway() -> InMemoryGateway:
    gw = InMemoryGateway(login="alice")
    gw.add_repo("alice", "commit-mirror")
    return gw


@pytest.fixture
def config() -> ConfigStore:
    return ConfigStore.in_memory(
        mirrorRepoOwner="alice",
        mirrorRepo="commit-mirror",
        selectedRepos=["alice/proj"],
    )


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore.in_memory(access_token="gho_test")


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def notes() -> Notes:
    return Notes()


@pytest.fixture
def context(config, gateway, sleeps, notes) -> MirrorContext:
    return MirrorContext(
        config,
        gateway_factory=lambda token: gateway,
        limiter=RateLimiter(min_delay=0),
        sleep=sleeps,
        notifier=notes,
    )
