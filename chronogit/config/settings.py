"""
Mirror Settings — Validated view of the persisted configuration.

Keys are stored in camelCase (``mirrorRepoOwner``, ``selectedRepos``, ...)
and exposed as snake_case attributes.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MIRROR_REPO = "commit-mirror"
DEFAULT_SYNC_INTERVAL_MS = 3 * 60 * 60 * 1000
MIN_SYNC_INTERVAL_MS = 60 * 1000
DEFAULT_BATCH_SIZE = 5
DEFAULT_COMMITS_PER_REPO = 10
DEFAULT_MIN_REQUEST_DELAY = 1.0

# Persisted keys
KEY_OWNER = "mirrorRepoOwner"
KEY_REPO = "mirrorRepo"
KEY_SELECTED = "selectedRepos"
KEY_SELECTED_LEGACY = "selectedRepo"
KEY_SYNC_INTERVAL = "syncInterval"
KEY_CONFLICT_POLICY = "conflictPolicy"

ConflictPolicy = Literal["overwrite", "abort"]


class MirrorSettings(BaseModel):
    """Configuration for the mirroring pipeline."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mirror_repo_owner: Optional[str] = Field(default=None, alias=KEY_OWNER)
    mirror_repo: Optional[str] = Field(default=None, alias=KEY_REPO)
    selected_repos: List[str] = Field(default_factory=list, alias=KEY_SELECTED)
    sync_interval: int = Field(
        default=DEFAULT_SYNC_INTERVAL_MS,
        ge=MIN_SYNC_INTERVAL_MS,
        alias=KEY_SYNC_INTERVAL,
    )

    # When a write hits a moved version token: re-probe and overwrite, or
    # count the commit as failed.
    conflict_policy: ConflictPolicy = Field(default="overwrite", alias=KEY_CONFLICT_POLICY)

    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1, alias="batchSize")
    commits_per_repo: int = Field(default=DEFAULT_COMMITS_PER_REPO, ge=1, le=100, alias="commitsPerRepo")
    min_request_delay: float = Field(default=DEFAULT_MIN_REQUEST_DELAY, ge=0, alias="minRequestDelay")

    @field_validator("mirror_repo_owner", "mirror_repo")
    @classmethod
    def _blank_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def sync_interval_seconds(self) -> float:
        return self.sync_interval / 1000

    @property
    def overwrite_on_conflict(self) -> bool:
        return self.conflict_policy == "overwrite"
