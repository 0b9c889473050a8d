from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from bookshelf.exceptions import ConfigError

DEFAULT_ENV = "develop"
_ENV_TAG = re.compile(r"^[A-Za-z0-9_-]+$")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    app_env: str = Field(default=DEFAULT_ENV, alias="APP_ENV")
    database_url: str = Field(default="sqlite:///bookshelf.db", alias="DATABASE_URL")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    static_contents_path: str = Field(default="", alias="STATIC_CONTENTS_PATH")
    metrics_path: str = Field(default="/prometheus", alias="METRICS_PATH")
    shutdown_grace_seconds: float = Field(default=10.0, alias="SHUTDOWN_GRACE_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    master_generator: bool = Field(default=True, alias="MASTER_GENERATOR")

    session_secret: str = Field(default="change-me", alias="SESSION_SECRET")
    session_cookie_name: str = Field(default="bookshelf_session", alias="SESSION_COOKIE_NAME")
    session_exp_minutes: int = Field(default=60 * 24, alias="SESSION_EXP_MINUTES")

    @property
    def static_path(self) -> Path | None:
        return Path(self.static_contents_path) if self.static_contents_path else None


def resolve_env(env: str | None = None) -> str:
    tag = env or os.environ.get("APP_ENV") or DEFAULT_ENV
    if not _ENV_TAG.match(tag):
        raise ConfigError(f"Invalid environment tag: {tag!r}")
    return tag


def config_path(env: str, config_dir: str | Path | None = None) -> Path:
    base = Path(config_dir or os.environ.get("CONFIG_DIR") or ".")
    return base / f"application.{env}.env"


def load_config(env: str | None = None, config_dir: str | Path | None = None) -> tuple[Settings, str]:
    """Load ``application.<env>.env`` and return the settings with the resolved tag.

    Real environment variables take precedence over values in the file.
    """

    tag = resolve_env(env)
    path = config_path(tag, config_dir)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        settings = Settings(_env_file=path, app_env=tag)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc
    return settings, tag
