"""
Repository Selection — Choose which repositories feed the mirror.

The interactive picker lives in the CLI; this module lists candidates and
persists the chosen set under ``selectedRepos``.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from .config.settings import KEY_SELECTED
from .config.store import CredentialStore
from .mirror.context import MirrorContext
from .mirror.orchestrator import parse_sources
from .models import GitHubRepo

logger = logging.getLogger(__name__)


async def list_candidate_repos(
    context: MirrorContext,
    credentials: CredentialStore,
) -> List[GitHubRepo]:
    """Repositories of the authenticated user that can be mirrored."""
    async with context.session(credentials) as gateway:
        return await context.call(gateway.list_user_repos, "list user repositories")


def save_selection(context: MirrorContext, full_names: Sequence[str]) -> List[str]:
    """
    Persist the selected ``owner/name`` references.

    Malformed entries raise ValueError; nothing is stored for an empty
    selection.
    """
    sources, invalid = parse_sources(full_names)
    if invalid:
        raise ValueError(f"Expected 'owner/name': {', '.join(invalid)}")

    if not sources:
        context.notify("info", "No repositories selected.")
        return []

    names = [s.full_name for s in sources]
    context.config.set(KEY_SELECTED, names)
    context.notify("info", f"Selected {len(names)} repositories for mirroring.")
    return names
