"""
Config Store — Local key/value persistence for configuration and secrets.

Two JSON files under the state directory (``state/`` by default, override
with CHRONOGIT_STATE_DIR):

- ``config.json``: destination owner/name, selected source repos, tuning
- ``credentials.json``: OAuth access and refresh tokens

Writes are atomic (write to temp, then rename). Reads never touch the
network.

## Environment Variables

- CHRONOGIT_STATE_DIR: Directory holding the JSON files
- CHRONOGIT_ACCESS_TOKEN: Overrides the stored access token
- GITHUB_TOKEN: Used as access token when nothing else is set
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import pydantic

from ..errors import ConfigurationError
from .settings import KEY_SELECTED, KEY_SELECTED_LEGACY, MirrorSettings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"


def default_state_dir() -> Path:
    return Path(os.environ.get("CHRONOGIT_STATE_DIR", "state"))


class JsonStore:
    """Flat JSON object persisted to a file (or kept in memory)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.path} must contain a JSON object")
        return data

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self.path.with_suffix(".tmp")
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=4)
            f.write("\n")
        temp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        self._save()

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class ConfigStore(JsonStore):
    """Non-secret configuration."""

    def __init__(self, path: Optional[Path] = None):
        super().__init__(path)
        self._migrate_legacy_keys()

    @classmethod
    def default(cls) -> "ConfigStore":
        return cls(default_state_dir() / "config.json")

    @classmethod
    def in_memory(cls, **values: Any) -> "ConfigStore":
        store = cls(None)
        store._data.update(values)
        store._migrate_legacy_keys()
        return store

    def _migrate_legacy_keys(self) -> None:
        # Older selections were written under the singular key
        legacy = self._data.get(KEY_SELECTED_LEGACY)
        if legacy is None:
            return
        if KEY_SELECTED not in self._data:
            self._data[KEY_SELECTED] = legacy
            logger.info(f"[config] Migrated '{KEY_SELECTED_LEGACY}' to '{KEY_SELECTED}'")
        del self._data[KEY_SELECTED_LEGACY]
        self._save()

    def settings(self) -> MirrorSettings:
        """Validate the stored values."""
        try:
            return MirrorSettings.model_validate(self._data)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


class CredentialStore(JsonStore):
    """
    Secret storage.

    ``get("accessToken")`` prefers CHRONOGIT_ACCESS_TOKEN, then the stored
    value, then GITHUB_TOKEN.
    """

    @classmethod
    def default(cls) -> "CredentialStore":
        return cls(default_state_dir() / "credentials.json")

    @classmethod
    def in_memory(cls, access_token: Optional[str] = None) -> "CredentialStore":
        store = cls(None)
        if access_token:
            store._data[ACCESS_TOKEN_KEY] = access_token
        return store

    def get(self, key: str, default: Any = None) -> Any:
        if key == ACCESS_TOKEN_KEY:
            override = os.environ.get("CHRONOGIT_ACCESS_TOKEN")
            if override:
                return override
            stored = super().get(key)
            if stored:
                return stored
            return os.environ.get("GITHUB_TOKEN") or default
        return super().get(key, default)

    def _save(self) -> None:
        super()._save()
        if self.path is not None and self.path.exists():
            os.chmod(self.path, 0o600)
