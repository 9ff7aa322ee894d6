from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path.home() / ".usage-monitor"
DEFAULT_DB_PATH = BASE_DIR / "store.db"
DEFAULT_ENCRYPTION_KEY_FILE = BASE_DIR / "encryption.key"
DEFAULT_PRIMARY_CREDENTIALS_PATH = Path.home() / ".claude" / ".credentials.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="USAGE_MONITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    usage_base_url: str = "https://api.anthropic.com"
    usage_path: str = "/api/oauth/usage"
    anthropic_beta: str = "oauth-2025-04-20"
    user_agent: str = "claude-code/2.0.32"
    usage_request_timeout_seconds: float = Field(default=30.0, gt=0)

    refresh_interval_seconds: float = Field(default=60.0, gt=0)
    stale_after_seconds: float = Field(default=20.0, ge=0)

    database_url: str = f"sqlite+aiosqlite:///{DEFAULT_DB_PATH}"
    encryption_key_file: Path = DEFAULT_ENCRYPTION_KEY_FILE
    primary_credentials_path: Path = DEFAULT_PRIMARY_CREDENTIALS_PATH

    notification_backend: Literal["log", "desktop", "webhook"] = "log"
    notification_webhook_url: str | None = None
    notification_command: str = "notify-send"

    log_level: str = "INFO"

    @field_validator("encryption_key_file", "primary_credentials_path", mode="after")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("database_url", mode="after")
    @classmethod
    def _expand_database_url(cls, value: str) -> str:
        prefix = "sqlite+aiosqlite:///"
        if value.startswith(prefix + "~"):
            return prefix + str(Path(value[len(prefix) :]).expanduser())
        return value

    @field_validator("log_level", mode="after")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
