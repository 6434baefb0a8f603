"""Provider settings store: enablement flags and API keys per provider.

Persisted as a JSON file in the editor's settings shape::

    {
      "providers": {"openai": {"enabled": true, "apiKey": "sk-..."}},
      "defaultProvider": "openai",
      "defaultModel": "gpt-4.1-nano"
    }

API keys may also come from the environment (``{prefix}{PROVIDER_ID}``,
default prefix ``PROMPTCHAIN_SECRET_``) when the file holds none; the file
value wins when both are set.

The store is an explicit object handed to the node processor and the
orchestrator. Callers read through ``credential_for`` and
``is_any_provider_configured``; nothing else in the runtime touches the file.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger("promptchain.settings_store")


class ProviderSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    api_key: str = Field(default="", alias="apiKey")


class AppSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    default_provider: str = Field(default="openai", alias="defaultProvider")
    default_model: str = Field(default="gpt-4.1-nano", alias="defaultModel")


def default_settings(
    provider_ids: Iterable[str],
    default_provider: str = "openai",
    default_model: str = "gpt-4.1-nano",
) -> AppSettings:
    """Every known provider present, only the default one enabled, no keys."""
    return AppSettings(
        providers={
            pid: ProviderSettings(enabled=(pid == default_provider))
            for pid in provider_ids
        },
        default_provider=default_provider,
        default_model=default_model,
    )


class SettingsStore:
    """In-memory settings with optional JSON-file persistence.

    Parameters
    ----------
    initial : AppSettings
        Settings used when no file exists (or the file cannot be read).
    path : str | Path | None
        JSON file to load from / save to. ``None`` keeps everything in memory.
    env_prefix : str | None
        Environment variable prefix for key fallback; ``None`` disables it.
    """

    def __init__(
        self,
        initial: AppSettings | None = None,
        path: str | Path | None = None,
        env_prefix: str | None = "PROMPTCHAIN_SECRET_",
    ):
        self.path = Path(path) if path else None
        self.env_prefix = env_prefix
        self._lock = threading.Lock()
        self._settings = initial.model_copy(deep=True) if initial else AppSettings()
        if self.path is not None:
            self._settings = self._load(self._settings)

    # ── persistence ──────────────────────────────────────────

    def _load(self, fallback: AppSettings) -> AppSettings:
        if self.path is None or not self.path.exists():
            return fallback
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            loaded = AppSettings.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.error("Error loading settings from %s: %s", self.path, exc)
            return fallback
        # Providers added since the file was written keep their defaults
        for pid, entry in fallback.providers.items():
            loaded.providers.setdefault(pid, entry)
        logger.info("Loaded provider settings from %s", self.path)
        return loaded

    def save(self) -> None:
        self._write(self.get())

    def _write(self, settings: AppSettings) -> None:
        if self.path is None:
            return
        payload = settings.model_dump(by_alias=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.error("Error saving settings to %s: %s", self.path, exc)
            raise

    def _commit(self, updated: AppSettings) -> AppSettings:
        # Swap in only once the file write succeeded
        self._write(updated)
        with self._lock:
            self._settings = updated
        return self.get()

    # ── reads ────────────────────────────────────────────────

    def get(self) -> AppSettings:
        """Return a copy of the current settings."""
        with self._lock:
            return self._settings.model_copy(deep=True)

    @property
    def default_provider(self) -> str:
        return self._settings.default_provider

    @property
    def default_model(self) -> str:
        return self._settings.default_model

    def is_enabled(self, provider_id: str) -> bool:
        entry = self._settings.providers.get(provider_id)
        return bool(entry and entry.enabled)

    def credential_for(self, provider_id: str) -> str | None:
        """API key for an enabled provider, or None."""
        with self._lock:
            entry = self._settings.providers.get(provider_id)
            if entry is None or not entry.enabled:
                return None
            if entry.api_key:
                return entry.api_key
        return self._env_credential(provider_id)

    def is_any_provider_configured(self) -> bool:
        """True when at least one provider is enabled and has a key."""
        with self._lock:
            ids = [pid for pid, entry in self._settings.providers.items() if entry.enabled]
        return any(self.credential_for(pid) for pid in ids)

    def _env_credential(self, provider_id: str) -> str | None:
        if not self.env_prefix:
            return None
        value = os.environ.get(f"{self.env_prefix}{provider_id.upper()}")
        if value:
            logger.debug("Credential for '%s' taken from environment", provider_id)
        return value or None

    # ── writes ───────────────────────────────────────────────

    def update_provider(
        self,
        provider_id: str,
        *,
        enabled: bool | None = None,
        api_key: str | None = None,
    ) -> AppSettings:
        """Merge changes into one provider's entry and persist.

        Raises OSError when the settings file cannot be written; the
        in-memory settings are then left unchanged.
        """
        with self._lock:
            updated = self._settings.model_copy(deep=True)
        entry = updated.providers.get(provider_id) or ProviderSettings()
        changes: dict[str, object] = {}
        if enabled is not None:
            changes["enabled"] = enabled
        if api_key is not None:
            changes["api_key"] = api_key
        updated.providers[provider_id] = entry.model_copy(update=changes)
        result = self._commit(updated)
        logger.info("Updated settings for provider %s (%s)", provider_id, ", ".join(sorted(changes)) or "no changes")
        return result

    def update_defaults(
        self, *, default_provider: str | None = None, default_model: str | None = None
    ) -> AppSettings:
        with self._lock:
            updated = self._settings.model_copy(deep=True)
        if default_provider is not None:
            updated.default_provider = default_provider
        if default_model is not None:
            updated.default_model = default_model
        return self._commit(updated)
