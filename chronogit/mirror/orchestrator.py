"""
Commit Mirror — Copy recent commits of selected repos into the mirror.

For each selected source repository the orchestrator fetches the most
recent commits and writes one document per commit to
``commits/<sha>.md`` in the mirror repository.

## Flow

    sources ──batch(5)──▶ [repo, repo, ...] concurrently
        repo ──list_commits──▶ commits
            commit ──probe + write (one unit)──▶ commits/<sha>.md

- Batches run one after another; repos inside a batch run concurrently.
- Every remote call is queued on the rate limiter and retried.
- A failing repo or commit is counted and logged, never fatal to the run.
- Only missing credentials or a missing destination owner abort the run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterator, List, Optional, Sequence

from ..config.settings import DEFAULT_MIRROR_REPO, MirrorSettings
from ..config.store import CredentialStore
from ..errors import ConfigurationError, ConflictError, NotFoundError
from ..gateway import Committer, Gateway
from ..models import CommitRecord, MirrorRunResult, MirrorTarget, SourceRepo
from .context import MirrorContext
from .document import commit_message, document_path, render_document

logger = logging.getLogger(__name__)


def batches(items: Sequence[SourceRepo], size: int) -> Iterator[List[SourceRepo]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def parse_sources(names: Sequence[str]) -> tuple:
    """
    Parse persisted ``owner/name`` entries.

    Returns (sources, invalid_entries). Duplicates are dropped, first
    occurrence wins.
    """
    sources: List[SourceRepo] = []
    invalid: List[str] = []
    seen = set()
    for name in names:
        try:
            source = SourceRepo.parse(name)
        except ValueError:
            invalid.append(name)
            continue
        key = source.full_name.lower()
        if key not in seen:
            seen.add(key)
            sources.append(source)
    return sources, invalid


class CommitMirror:
    """Mirrors commit metadata from the selected repositories."""

    def __init__(self, context: MirrorContext):
        self.context = context

    def _target(self, settings: MirrorSettings) -> MirrorTarget:
        if not settings.mirror_repo_owner:
            raise ConfigurationError(
                "No mirror repository owner configured. Run provisioning first."
            )
        return MirrorTarget(
            owner=settings.mirror_repo_owner,
            repository_name=settings.mirror_repo or DEFAULT_MIRROR_REPO,
        )

    async def mirror_repos(self, credentials: CredentialStore) -> MirrorRunResult:
        """
        Run one mirroring pass.

        Raises ConfigurationError when it cannot start; otherwise returns the
        processed/failed counts, even when some units failed.
        """
        self.context.require_token(credentials)
        settings = self.context.config.settings()
        target = self._target(settings)

        result = MirrorRunResult()
        sources, invalid = parse_sources(settings.selected_repos)
        for entry in invalid:
            logger.warning(f"[mirror] Ignoring malformed repository reference {entry!r}")
            result.failed += 1

        if not sources:
            logger.info("[mirror] No repositories selected for mirroring")
            if invalid:
                self._report(result)
            return result

        committer = Committer(
            name=target.owner,
            email=f"{target.owner}@users.noreply.github.com",
        )

        logger.info(
            f"[mirror] Mirroring {len(sources)} repositories into {target.full_name}"
        )

        async with self.context.session(credentials) as gateway:
            for number, batch in enumerate(batches(sources, settings.batch_size), start=1):
                logger.debug(
                    f"[mirror] Batch {number}: {', '.join(s.full_name for s in batch)}"
                )
                outcomes = await asyncio.gather(*(
                    self._mirror_source(gateway, target, source, committer, settings)
                    for source in batch
                ))
                for outcome in outcomes:
                    result.merge(outcome)

        self._report(result)
        return result

    async def _mirror_source(
        self,
        gateway: Gateway,
        target: MirrorTarget,
        source: SourceRepo,
        committer: Committer,
        settings: MirrorSettings,
    ) -> MirrorRunResult:
        outcome = MirrorRunResult()

        try:
            commits: List[CommitRecord] = await self.context.call(
                lambda: gateway.list_commits(source.owner, source.name, settings.commits_per_repo),
                f"list commits of {source.full_name}",
            )
        except Exception as e:
            logger.error(
                f"[mirror] Could not fetch commits from {source.full_name}: {e}",
                extra={"repo": source.full_name},
            )
            outcome.failed += 1
            return outcome

        if not commits:
            logger.info(f"[mirror] {source.full_name} has no recent commits")
            return outcome

        for commit in commits:
            try:
                await self.context.call(
                    lambda: self._write_document(gateway, target, source, commit, committer, settings),
                    f"mirror {source.full_name}@{commit.sha[:7]}",
                )
                outcome.processed += 1
            except Exception as e:
                logger.error(
                    f"[mirror] Failed to mirror {commit.sha[:7]} from {source.full_name}: {e}",
                    extra={"repo": source.full_name, "sha": commit.sha},
                )
                outcome.failed += 1

        logger.info(
            f"[mirror] {source.full_name}: {outcome.processed} mirrored, {outcome.failed} failed"
        )
        return outcome

    async def _write_document(
        self,
        gateway: Gateway,
        target: MirrorTarget,
        source: SourceRepo,
        commit: CommitRecord,
        committer: Committer,
        settings: MirrorSettings,
    ) -> None:
        """Probe then create-or-update. Runs as one rate-limited unit."""
        path = document_path(commit.sha)

        prior_token: Optional[str] = None
        try:
            existing = await gateway.get_file_content(target.owner, target.repository_name, path)
            prior_token = existing.token
        except NotFoundError:
            pass

        try:
            await gateway.put_file_content(
                target.owner,
                target.repository_name,
                path,
                render_document(commit),
                commit_message(commit, source),
                committer,
                prior_token=prior_token,
            )
        except ConflictError as e:
            if settings.overwrite_on_conflict:
                raise
            raise ConflictError(
                f"{path} changed concurrently, left untouched ({e.message})",
                status_code=e.status_code,
                retryable=False,
            ) from e

    def _report(self, result: MirrorRunResult) -> None:
        summary = f"Mirrored {result.processed} commits, {result.failed} failed"
        if result.failed:
            self.context.notify("warning", summary)
        else:
            self.context.notify("info", summary)
