"""
Models — Pydantic records shared across the pipeline.
"""

from .commit import (
    CommitRecord,
    FileVersion,
    GitHubCommit,
    GitHubRepo,
    GitHubUser,
    MirrorRunResult,
    MirrorTarget,
    SourceRepo,
)

__all__ = [
    "CommitRecord",
    "FileVersion",
    "GitHubCommit",
    "GitHubRepo",
    "GitHubUser",
    "MirrorRunResult",
    "MirrorTarget",
    "SourceRepo",
]
