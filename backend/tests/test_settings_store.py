"""Tests for the provider settings store."""

from __future__ import annotations

import json

import pytest

from promptchain.services.settings_store import (
    AppSettings,
    ProviderSettings,
    SettingsStore,
    default_settings,
)

IDS = ["openai", "anthropic", "mistral"]


@pytest.fixture
def initial() -> AppSettings:
    return default_settings(IDS)


class TestDefaults:

    def test_only_default_provider_enabled(self, initial):
        assert initial.providers["openai"].enabled is True
        assert initial.providers["anthropic"].enabled is False
        assert initial.default_provider == "openai"
        assert initial.default_model == "gpt-4.1-nano"

    def test_fresh_store_has_no_configured_provider(self, initial):
        store = SettingsStore(initial=initial, env_prefix=None)
        assert store.is_any_provider_configured() is False
        assert store.credential_for("openai") is None


class TestCredentials:

    def test_key_for_enabled_provider(self, initial):
        store = SettingsStore(initial=initial, env_prefix=None)
        store.update_provider("openai", api_key="sk-123")
        assert store.credential_for("openai") == "sk-123"
        assert store.is_any_provider_configured() is True

    def test_disabled_provider_has_no_credential(self, initial):
        store = SettingsStore(initial=initial, env_prefix=None)
        store.update_provider("anthropic", api_key="ak-123")
        assert store.credential_for("anthropic") is None
        assert store.is_any_provider_configured() is False

    def test_unknown_provider_has_no_credential(self, initial):
        assert SettingsStore(initial=initial, env_prefix=None).credential_for("ghost") is None

    def test_environment_fallback(self, initial, monkeypatch):
        monkeypatch.setenv("PROMPTCHAIN_SECRET_OPENAI", "sk-env")
        store = SettingsStore(initial=initial)
        assert store.credential_for("openai") == "sk-env"
        assert store.is_any_provider_configured() is True

    def test_environment_ignored_for_disabled_provider(self, initial, monkeypatch):
        monkeypatch.setenv("PROMPTCHAIN_SECRET_MISTRAL", "m-env")
        assert SettingsStore(initial=initial).credential_for("mistral") is None

    def test_file_key_wins_over_environment(self, initial, monkeypatch):
        monkeypatch.setenv("PROMPTCHAIN_SECRET_OPENAI", "sk-env")
        store = SettingsStore(initial=initial)
        store.update_provider("openai", api_key="sk-file")
        assert store.credential_for("openai") == "sk-file"

    def test_custom_env_prefix(self, initial, monkeypatch):
        monkeypatch.setenv("MYAPP_KEY_OPENAI", "sk-custom")
        assert SettingsStore(initial=initial, env_prefix="MYAPP_KEY_").credential_for("openai") == "sk-custom"


class TestUpdates:

    def test_update_provider_merges_fields(self, initial):
        store = SettingsStore(initial=initial, env_prefix=None)
        store.update_provider("anthropic", api_key="ak-1")
        updated = store.update_provider("anthropic", enabled=True)
        assert updated.providers["anthropic"] == ProviderSettings(enabled=True, api_key="ak-1")

    def test_update_adds_new_provider(self, initial):
        store = SettingsStore(initial=initial, env_prefix=None)
        store.update_provider("cohere", enabled=True, api_key="co")
        assert store.credential_for("cohere") == "co"

    def test_update_defaults(self, initial):
        store = SettingsStore(initial=initial, env_prefix=None)
        store.update_defaults(default_provider="anthropic", default_model="claude-3-haiku-20240307")
        assert store.default_provider == "anthropic"
        assert store.default_model == "claude-3-haiku-20240307"

    def test_get_returns_copy(self, initial):
        store = SettingsStore(initial=initial, env_prefix=None)
        snapshot = store.get()
        snapshot.providers["openai"].api_key = "tampered"
        assert store.credential_for("openai") is None


class TestPersistence:

    def test_save_and_reload(self, initial, tmp_path):
        path = tmp_path / "settings.json"
        store = SettingsStore(initial=initial, path=path, env_prefix=None)
        store.update_provider("openai", api_key="sk-saved")

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["providers"]["openai"] == {"enabled": True, "apiKey": "sk-saved"}
        assert raw["defaultProvider"] == "openai"
        assert raw["defaultModel"] == "gpt-4.1-nano"

        reloaded = SettingsStore(initial=initial, path=path, env_prefix=None)
        assert reloaded.credential_for("openai") == "sk-saved"

    def test_reads_editor_shaped_file(self, initial, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "providers": {"anthropic": {"enabled": True, "apiKey": "ak-file"}},
            "defaultProvider": "anthropic",
            "defaultModel": "claude-3-haiku-20240307",
        }), encoding="utf-8")

        store = SettingsStore(initial=initial, path=path, env_prefix=None)
        assert store.credential_for("anthropic") == "ak-file"
        assert store.default_provider == "anthropic"
        # providers missing from the file keep their defaults
        assert set(store.get().providers) == set(IDS)

    def test_corrupt_file_falls_back(self, initial, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        store = SettingsStore(initial=initial, path=path, env_prefix=None)
        assert store.get() == initial

    def test_missing_file_uses_initial(self, initial, tmp_path):
        store = SettingsStore(initial=initial, path=tmp_path / "absent.json", env_prefix=None)
        assert store.get() == initial
        assert not (tmp_path / "absent.json").exists()

    def test_failed_save_leaves_settings_unchanged(self, initial, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = SettingsStore(initial=initial, path=blocker / "settings.json", env_prefix=None)

        with pytest.raises(OSError):
            store.update_provider("openai", api_key="sk-lost")
        with pytest.raises(OSError):
            store.update_defaults(default_provider="anthropic")

        assert store.credential_for("openai") is None
        assert store.default_provider == "openai"
        assert store.get() == initial
