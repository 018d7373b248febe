"""
Config Module — Settings schema and local persistence.
"""

from .settings import DEFAULT_MIRROR_REPO, MirrorSettings
from .store import ACCESS_TOKEN_KEY, ConfigStore, CredentialStore

__all__ = [
    "ACCESS_TOKEN_KEY",
    "ConfigStore",
    "CredentialStore",
    "DEFAULT_MIRROR_REPO",
    "MirrorSettings",
]
