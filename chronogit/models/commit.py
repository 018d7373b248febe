"""
Commit Models — Records fetched from the remote API and mirror coordinates.

Payloads returned by GitHub are validated against the ``GitHub*`` schemas
before being turned into the small immutable records the pipeline works
with.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GitHubUser(BaseModel):
    """``GET /user`` response (subset)."""

    login: str
    id: int
    avatar_url: str = ""
    html_url: str = ""


class GitHubRepo(BaseModel):
    """Repository entry from ``GET /user/repos`` or ``GET /repos/{o}/{r}``."""

    name: str
    full_name: str
    private: bool
    html_url: str
    description: Optional[str] = None
    fork: bool = False


class GitHubCommitAuthor(BaseModel):
    date: str


class GitHubCommitDetail(BaseModel):
    message: str
    author: GitHubCommitAuthor


class GitHubCommit(BaseModel):
    """Entry from ``GET /repos/{o}/{r}/commits``."""

    sha: str
    commit: GitHubCommitDetail
    html_url: str

    def to_record(self) -> "CommitRecord":
        return CommitRecord(
            sha=self.sha,
            message=self.commit.message,
            author_date=self.commit.author.date,
            source_url=self.html_url,
        )


class CommitRecord(BaseModel):
    """
    Commit metadata mirrored into the destination repository.

    Immutable once fetched; the sha is unique within its source repo.
    """

    model_config = ConfigDict(frozen=True)

    sha: str = Field(min_length=1)
    message: str
    author_date: str
    source_url: str


class SourceRepo(BaseModel):
    """A repository the user selected as a commit origin."""

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str

    @classmethod
    def parse(cls, full_name: str) -> "SourceRepo":
        """Parse ``owner/name``."""
        owner, sep, name = full_name.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Expected 'owner/name', got {full_name!r}")
        return cls(owner=owner, name=name)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


class MirrorTarget(BaseModel):
    """The single destination repository."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repository_name: str

    @field_validator("owner", "repository_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repository_name}"


class FileVersion(BaseModel):
    """Result of probing a stored file: its current version token."""

    path: str
    token: str


class MirrorRunResult(BaseModel):
    """Counters for a single mirroring invocation."""

    processed: int = 0
    failed: int = 0

    @property
    def success(self) -> bool:
        return self.failed == 0

    def merge(self, other: "MirrorRunResult") -> None:
        self.processed += other.processed
        self.failed += other.failed
