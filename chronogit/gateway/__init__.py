"""
Gateway Module — Remote API access (GitHub REST and in-memory).
"""

from .base import Committer, Gateway
from .github import GitHubApiGateway
from .memory import InMemoryGateway

__all__ = [
    "Committer",
    "Gateway",
    "GitHubApiGateway",
    "InMemoryGateway",
]
