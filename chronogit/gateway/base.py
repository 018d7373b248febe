"""
Gateway Base Class — Interface to the remote code-hosting API.

Everything in the pipeline talks to GitHub through this interface, so the
real HTTP client and the in-memory fake are interchangeable.

Implementations map remote failures onto ``chronogit.errors``:
``NotFoundError`` for missing resources, ``RateLimitError`` when throttled,
``ValidationError`` for malformed payloads, ``TransientRemoteError`` for
everything else.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from ..models import CommitRecord, FileVersion, GitHubRepo, GitHubUser


@dataclass(frozen=True)
class Committer:
    """Identity recorded on commits written to the mirror."""

    name: str
    email: str

    def to_dict(self) -> dict:
        return {"name": self.name, "email": self.email}


class Gateway(ABC):
    """Abstract remote API surface."""

    @abstractmethod
    async def get_authenticated_user(self) -> GitHubUser:
        """The identity behind the access token."""

    @abstractmethod
    async def get_repo(self, owner: str, name: str) -> GitHubRepo:
        """Fetch a repository. Raises NotFoundError if absent."""

    @abstractmethod
    async def create_repo(
        self,
        name: str,
        private: bool = False,
        description: str = "",
        auto_init: bool = True,
    ) -> GitHubRepo:
        """Create a repository owned by the authenticated user."""

    @abstractmethod
    async def list_user_repos(self) -> List[GitHubRepo]:
        """Repositories visible to the authenticated user."""

    @abstractmethod
    async def list_commits(
        self, owner: str, name: str, page_size: int
    ) -> List[CommitRecord]:
        """Most recent commits of a repository, newest first."""

    @abstractmethod
    async def get_file_content(self, owner: str, repo: str, path: str) -> FileVersion:
        """Probe a stored file. Raises NotFoundError if absent."""

    @abstractmethod
    async def put_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        committer: Committer,
        prior_token: Optional[str] = None,
    ) -> None:
        """
        Create or update a file.

        ``prior_token`` must be the current version token when the file
        already exists; a stale token raises ConflictError.
        """

    async def aclose(self) -> None:
        """Release network resources."""
