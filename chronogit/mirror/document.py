"""
Mirrored Document — Deterministic rendering of one commit.

The document path is keyed by sha, so re-mirroring a commit always targets
the same file, and the content depends only on the commit record.
"""

from __future__ import annotations

from ..models import CommitRecord, SourceRepo

COMMITS_DIR = "commits"


def document_path(sha: str) -> str:
    """Path of the mirrored document for ``sha``."""
    return f"{COMMITS_DIR}/{sha}.md"


def _fence_for(text: str) -> str:
    """Code fence longer than any backtick run inside ``text``."""
    longest = run = 0
    for char in text:
        run = run + 1 if char == "`" else 0
        longest = max(longest, run)
    return "`" * max(3, longest + 1)


def render_document(commit: CommitRecord) -> str:
    """Markdown body for a commit. Pure function of the record."""
    message = commit.message.replace("\r\n", "\n").rstrip("\n")
    fence = _fence_for(message)
    return (
        f"# Commit {commit.sha}\n"
        f"\n"
        f"- **Date:** {commit.author_date}\n"
        f"- **Source:** {commit.source_url}\n"
        f"\n"
        f"## Message\n"
        f"\n"
        f"{fence}\n"
        f"{message}\n"
        f"{fence}\n"
    )


def commit_message(commit: CommitRecord, source: SourceRepo) -> str:
    """Message for the commit that writes the document into the mirror."""
    return f"Mirror commit {commit.sha[:7]} from {source.full_name}"
