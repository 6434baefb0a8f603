"""Application settings: loaded from environment variables."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Server ──────────────────────────────────────────────────
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = False

    # ── CORS (flow editor frontend) ────────────────────────────
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # ── Logging ─────────────────────────────────────────────────
    # LOG_FORMAT=json switches to python-json-logger output with
    # run_id / node_id correlation fields.
    LOG_FORMAT: str = "text"  # text | json
    LOG_LEVEL: str | None = None  # defaults to DEBUG when DEBUG=true, else INFO

    # ── Provider settings store ─────────────────────────────────
    # JSON file holding provider enablement + API keys, in the shape
    #   {"providers": {"openai": {"enabled": true, "apiKey": "..."}},
    #    "defaultProvider": "openai", "defaultModel": "gpt-4.1-nano"}
    SETTINGS_PATH: str = "./promptchain_settings.json"

    # Environment fallback for API keys: PROMPTCHAIN_SECRET_OPENAI etc.
    # Consulted only when the settings file holds no key for an enabled provider.
    SECRET_ENV_PREFIX: str = "PROMPTCHAIN_SECRET_"

    # ── Providers ───────────────────────────────────────────────
    PROVIDER_TIMEOUT_SECONDS: float = 60.0
    DEFAULT_PROVIDER: str = "openai"
    DEFAULT_MODEL: str = "gpt-4.1-nano"
    DEFAULT_TEMPERATURE: float = 0.7
    DEFAULT_MAX_TOKENS: int = 500

    # ── Runtime ─────────────────────────────────────────────────
    # Pause between two nodes of a run so the editor can animate progress.
    # 0 disables pacing entirely.
    NODE_PACING_SECONDS: float = 0.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def _auto_configure(self) -> "Settings":
        """Derive LOG_LEVEL from DEBUG when not set explicitly."""
        if self.LOG_LEVEL is None:
            object.__setattr__(self, "LOG_LEVEL", "DEBUG" if self.DEBUG else "INFO")
        if self.NODE_PACING_SECONDS < 0:
            object.__setattr__(self, "NODE_PACING_SECONDS", 0.0)
        return self


settings = Settings()
