"""
In-Memory Gateway — Non-networked gateway for tests and dry runs.

Behaves like the GitHub contents API closely enough for the pipeline:
version tokens are git blob hashes of the stored content, writes to an
existing file require the current token, and missing resources raise
``NotFoundError``.

Failures can be injected per operation with ``fail_on(...)``.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import ConflictError, MirrorError, NotFoundError
from ..models import CommitRecord, FileVersion, GitHubRepo, GitHubUser
from .base import Committer, Gateway

logger = logging.getLogger(__name__)


def blob_token(content: str) -> str:
    """Git blob hash, the same token GitHub returns as a file's ``sha``."""
    data = content.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


@dataclass
class StoredFile:
    content: str
    token: str
    message: str
    committer: Committer


@dataclass
class FakeRepo:
    owner: str
    name: str
    private: bool = False
    description: str = ""
    commits: List[CommitRecord] = field(default_factory=list)
    files: Dict[str, StoredFile] = field(default_factory=dict)

    def to_model(self) -> GitHubRepo:
        return GitHubRepo(
            name=self.name,
            full_name=f"{self.owner}/{self.name}",
            private=self.private,
            html_url=f"https://github.com/{self.owner}/{self.name}",
            description=self.description or None,
        )


class InMemoryGateway(Gateway):
    """Gateway backed by dictionaries."""

    def __init__(self, login: str = "octocat", user_id: int = 1):
        self.user = GitHubUser(
            login=login,
            id=user_id,
            html_url=f"https://github.com/{login}",
        )
        self.repos: Dict[Tuple[str, str], FakeRepo] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self._failures: Dict[str, List[Tuple[Optional[tuple], Exception]]] = {}

    # -- Setup helpers -------------------------------------------------------

    def add_repo(
        self,
        owner: str,
        name: str,
        commits: Optional[List[CommitRecord]] = None,
        private: bool = False,
    ) -> FakeRepo:
        repo = FakeRepo(owner=owner, name=name, private=private, commits=list(commits or []))
        self.repos[(owner.lower(), name.lower())] = repo
        return repo

    def fail_on(
        self,
        operation: str,
        error: Exception,
        times: int = 1,
        args: Optional[tuple] = None,
    ) -> None:
        """
        Make the next ``times`` calls to ``operation`` raise ``error``.

        When ``args`` is given only calls whose leading arguments match fail.
        """
        self._failures.setdefault(operation, []).extend([(args, error)] * times)

    def files(self, owner: str, name: str) -> Dict[str, str]:
        """Path → content of every file in a repository."""
        repo = self._repo(owner, name)
        return {path: f.content for path, f in repo.files.items()}

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    # -- Internals -----------------------------------------------------------

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        pending = self._failures.get(operation)
        if not pending:
            return
        for index, (match, error) in enumerate(pending):
            if match is None or tuple(args[: len(match)]) == tuple(match):
                del pending[index]
                raise error

    def _repo(self, owner: str, name: str) -> FakeRepo:
        repo = self.repos.get((owner.lower(), name.lower()))
        if repo is None:
            raise NotFoundError(f"Repository {owner}/{name} not found", status_code=404)
        return repo

    # -- Gateway -------------------------------------------------------------

    async def get_authenticated_user(self) -> GitHubUser:
        self._record("get_authenticated_user")
        return self.user

    async def get_repo(self, owner: str, name: str) -> GitHubRepo:
        self._record("get_repo", owner, name)
        return self._repo(owner, name).to_model()

    async def create_repo(
        self,
        name: str,
        private: bool = False,
        description: str = "",
        auto_init: bool = True,
    ) -> GitHubRepo:
        self._record("create_repo", name, private, description, auto_init)
        key = (self.user.login.lower(), name.lower())
        if key in self.repos:
            raise MirrorError(f"Repository {self.user.login}/{name} already exists", status_code=422)

        repo = FakeRepo(owner=self.user.login, name=name, private=private, description=description)
        if auto_init:
            readme = f"# {name}\n"
            repo.files["README.md"] = StoredFile(
                content=readme,
                token=blob_token(readme),
                message="Initial commit",
                committer=Committer(self.user.login, f"{self.user.login}@users.noreply.github.com"),
            )
        self.repos[key] = repo
        return repo.to_model()

    async def list_user_repos(self) -> List[GitHubRepo]:
        self._record("list_user_repos")
        login = self.user.login.lower()
        return [r.to_model() for (owner, _), r in self.repos.items() if owner == login]

    async def list_commits(
        self, owner: str, name: str, page_size: int
    ) -> List[CommitRecord]:
        self._record("list_commits", owner, name, page_size)
        return list(self._repo(owner, name).commits[:page_size])

    async def get_file_content(self, owner: str, repo: str, path: str) -> FileVersion:
        self._record("get_file_content", owner, repo, path)
        stored = self._repo(owner, repo).files.get(path)
        if stored is None:
            raise NotFoundError(f"{path} not found in {owner}/{repo}", status_code=404)
        return FileVersion(path=path, token=stored.token)

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
        self._record("put_file_content", owner, repo, path, prior_token)
        target = self._repo(owner, repo)
        existing = target.files.get(path)

        if existing is not None and prior_token is None:
            raise ConflictError(f"{path} exists but no sha was supplied", status_code=422)
        if existing is not None and prior_token != existing.token:
            raise ConflictError(f"{path} does not match {prior_token}", status_code=409)

        target.files[path] = StoredFile(
            content=content,
            token=blob_token(content),
            message=message,
            committer=committer,
        )
