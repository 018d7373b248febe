"""
Mirror Provisioner — Make sure the destination repository exists.

Runs before any mirroring:

1. Resolve the owner. When unset, ask the API who the token belongs to and
   persist that login (lower-cased) as the default.
2. Resolve the repository name through the prompt, falling back to the
   configured name or ``commit-mirror``, and persist the choice.
3. Probe the repository; create it (public, auto-initialized) on
   ``NotFoundError``. Other failures propagate.

Check-then-create is not atomic. If another process creates the repository
in between, GitHub rejects the duplicate and the retry re-probes.
"""

from __future__ import annotations

import logging

from ..config.settings import DEFAULT_MIRROR_REPO, KEY_OWNER, KEY_REPO
from ..config.store import CredentialStore
from ..errors import ConfigurationError, NotFoundError
from ..gateway import Gateway
from ..models import MirrorTarget
from .context import MirrorContext

logger = logging.getLogger(__name__)

MIRROR_REPO_DESCRIPTION = "Mirror repo for tracking contribution"


class MirrorProvisioner:
    """Creates the mirror repository on first use."""

    def __init__(self, context: MirrorContext):
        self.context = context

    async def ensure_owner(self, gateway: Gateway) -> str:
        """Configured owner, or the authenticated login persisted as default."""
        owner = self.context.config.settings().mirror_repo_owner
        if owner:
            return owner

        user = await self.context.call(gateway.get_authenticated_user, "get authenticated user")
        owner = user.login.lower()
        self.context.config.set(KEY_OWNER, owner)
        self.context.notify("info", f"Mirror repository owner set to {owner}")
        return owner

    def resolve_repo_name(self) -> str:
        suggested = self.context.config.settings().mirror_repo or DEFAULT_MIRROR_REPO
        answer = self.context.prompt(suggested) if self.context.prompt else None
        name = (answer or "").strip() or suggested

        self.context.config.set(KEY_REPO, name)
        return name

    async def ensure_mirror_repo(self, credentials: CredentialStore) -> MirrorTarget:
        """Resolve the mirror target and create the repository if missing."""
        self.context.require_token(credentials)

        async with self.context.session(credentials) as gateway:
            owner = await self.ensure_owner(gateway)
            target = MirrorTarget(owner=owner, repository_name=self.resolve_repo_name())

            created = await self.context.call(
                lambda: self._check_or_create(gateway, target),
                f"provision {target.full_name}",
            )

        if created:
            self.context.notify("info", f"Mirror repository {target.full_name} created")
        else:
            logger.info(f"[provision] Mirror repository {target.full_name} exists")
        return target

    async def _check_or_create(self, gateway: Gateway, target: MirrorTarget) -> bool:
        try:
            await gateway.get_repo(target.owner, target.repository_name)
            return False
        except NotFoundError:
            logger.info(f"[provision] {target.full_name} not found, creating it")

        repo = await gateway.create_repo(
            target.repository_name,
            private=False,
            description=MIRROR_REPO_DESCRIPTION,
            auto_init=True,
        )
        # Repositories are always created under the token's own account
        if repo.full_name.lower() != target.full_name.lower():
            raise ConfigurationError(
                f"Mirror owner '{target.owner}' does not match the authenticated account; "
                f"{repo.full_name} was created instead of {target.full_name}"
            )
        return True
