"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (DROPCACHE__CACHE__TTL_HOURS=12)
  2. dropcache.yaml         (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("dropcache")
_DEFAULT_SNAPSHOT_PATH = str(Path(_DEFAULT_DATA_DIR) / "monster-cache.json")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first dropcache.yaml found, or None."""
    candidates = [
        Path("dropcache.yaml"),
        Path(platformdirs.user_config_dir("dropcache")) / "dropcache.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheSettings(BaseModel):
    ttl_hours: float = Field(default=24, gt=0)
    max_entries: int = Field(default=1000, ge=1)
    backend: Literal["file", "sqlite"] = "file"
    snapshot_path: str = _DEFAULT_SNAPSHOT_PATH
    db_path: str = _DEFAULT_DB_PATH


class WikiSettings(BaseModel):
    api_url: str = "https://oldschool.runescape.wiki/api.php"
    base_url: str = "https://oldschool.runescape.wiki"
    user_agent: str = "dropcache/1.0 (monster drop lookup)"
    category: str = "Category:Monsters"
    timeout_seconds: float = 30.0
    request_delay_ms: int = Field(default=100, ge=0)
    max_retries: int = Field(default=3, ge=1)
    rate_limit_wait_seconds: float = 5.0
    retry_backoff_seconds: float = 1.0
    batch_size: int = Field(default=10, ge=1)


class SearchSettings(BaseModel):
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=50, ge=1)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: DROPCACHE__WIKI__BATCH_SIZE=5
        env_prefix="DROPCACHE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheSettings = CacheSettings()
    wiki: WikiSettings = WikiSettings()
    search: SearchSettings = SearchSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )
