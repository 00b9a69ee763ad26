"""Longbox settings: settings.json, .env and LONGBOX_ environment variables."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = structlog.get_logger("longbox.config")


def default_data_dir() -> Path:
    """Resolve the default data directory.

    Uses LONGBOX_DATA_DIR when set, /config inside containers, otherwise the
    data/ folder next to the package.
    """
    data_dir_env = os.environ.get("LONGBOX_DATA_DIR", "")
    if data_dir_env:
        return Path(data_dir_env)
    if Path("/config").exists():
        return Path("/config")
    # __file__ is longbox/core/config.py, so go up to the project root
    return (Path(__file__).parent.parent.parent / "data").resolve()


def settings_file_path() -> Path:
    """Path of the settings.json file for the active data directory."""
    return default_data_dir() / "config" / "settings.json"


def load_settings_file(settings_file: Path | None = None) -> dict[str, Any]:
    """Read settings.json, returning an empty dict when missing or unreadable."""
    settings_file = settings_file or settings_file_path()
    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read settings file", path=str(settings_file), error=str(e))
        return {}

    if not isinstance(data, dict):
        logger.warning("Ignoring settings file with non-object root", path=str(settings_file))
        return {}
    return data


def json_config_settings_source(settings: BaseSettings | None = None) -> dict[str, Any]:
    """Flatten settings.json into Settings field names.

    The "matching" section belongs to the matching config loader and is
    skipped here.
    """
    data = load_settings_file()
    flattened: dict[str, Any] = {}

    # {"host": {"bind_address": ..., "port": ...}} is accepted as well as flat keys
    host = data.get("host")
    if isinstance(host, dict):
        if "bind_address" in host:
            flattened["host_bind_address"] = host["bind_address"]
        if "port" in host:
            flattened["host_port"] = host["port"]

    for key, value in data.items():
        if key in ("host", "matching"):
            continue
        flattened[key.lower()] = value

    return flattened


class Settings(BaseSettings):
    """Process-wide settings.

    Later sources win: settings.json, then .env, then LONGBOX_ environment
    variables, then keyword arguments. Only the session reads these; the
    engine receives plain config objects built from them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LONGBOX_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (  # type: ignore[return-value]
            json_config_settings_source,
            dotenv_settings,
            env_settings,
            init_settings,
        )

    # Application
    env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment (development, production, testing)",
    )

    host_bind_address: str = Field(
        default="127.0.0.1",
        description="Host address to bind the server to",
    )

    host_port: int = Field(
        default=8642,
        ge=1,
        le=65535,
        description="Port number to bind the server to",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    data_dir: Path = Field(
        default_factory=default_data_dir,
        description="Base directory for application data (config, cache, logs, knowledge base)",
    )

    # Organization
    library_root: Path | None = Field(
        default=None,
        description="Root folder organized files are written under (default <data_dir>/library)",
    )

    folder_name_format: str = Field(
        default="{publisher}/{series} ({volume})",
        description="Template for the destination folder",
    )

    file_name_format: str = Field(
        default="{series} #{issue} ({year})",
        description="Template for the destination file name (extension is kept)",
    )

    keep_original_files: bool = Field(
        default=True,
        description="Copy files into the library instead of moving them",
    )

    # Processing
    concurrency_limit: int = Field(
        default=3,
        ge=1,
        le=32,
        description="Maximum number of files identified concurrently",
    )

    lookup_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to each reference database / remote API lookup",
    )

    # Reference sources
    gcd_database_path: Path | None = Field(
        default=None,
        description="Path to a Grand Comics Database SQLite dump",
    )

    comicvine_api_key: str = Field(
        default="",
        description="ComicVine API key (remote enrichment is disabled when empty)",
    )

    comicvine_base_url: str = Field(
        default="https://comicvine.gamespot.com/api",
        description="ComicVine API base URL",
    )

    comicvine_rate_limit: int = Field(
        default=40,
        ge=1,
        description="Maximum ComicVine requests per rate limit period",
    )

    comicvine_rate_limit_period: int = Field(
        default=60,
        ge=1,
        description="ComicVine rate limit window in seconds",
    )

    comicvine_cache_enabled: bool = Field(
        default=True,
        description="Cache ComicVine responses on disk",
    )

    @property
    def config_dir(self) -> Path:
        return self.data_dir / "config"

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / "cache"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def knowledge_base_file(self) -> Path:
        """User knowledge base file."""
        return self.config_dir / "knowledge_base.json"

    @property
    def resolved_library_root(self) -> Path:
        """Library root, falling back to <data_dir>/library."""
        return self.library_root if self.library_root is not None else self.data_dir / "library"

    @property
    def is_debug(self) -> bool:
        return self.env == "development"

    @property
    def is_testing(self) -> bool:
        return self.env == "testing"

    def model_post_init(self, __context: object) -> None:
        self.data_dir = self.data_dir.resolve()
        for directory in (self.config_dir, self.cache_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings shared by the running process, built on first use."""
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached settings and read every source again."""
    get_settings.cache_clear()
    return get_settings()
