"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (DOTPACK__REGISTRY__ROOT_DIR=lib)
  2. dotpack.yaml           (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("dotpack")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "sources.db")


def _find_config_file() -> str | None:
    """Return the path of the first dotpack.yaml found, or None."""
    candidates = [
        Path("dotpack.yaml"),
        Path(platformdirs.user_config_dir("dotpack")) / "dotpack.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class RegistrySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    root_dir: str = "."
    source_suffix: str = ".py"
    listing_name: str = "__listing__"
    # Rewritten to "_" in every requested name: "com.acme.sample-manager"
    separator_substitute: str = "-"
    # false keeps failed names in LOADING forever, with waiters never woken
    propagate_failures: bool = True
    seed_known_packages: bool = True
    known_packages_url: str = "https://dotpack.github.io/known-packages.json"


class FetcherSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float = 30.0
    max_redirects: int = 3
    allowed_schemes: list[str] = ["http", "https"]


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    ttl_hours: int = 24
    db_path: str = _DEFAULT_DB_PATH


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: DOTPACK__FETCHER__MAX_REDIRECTS=5
        env_prefix="DOTPACK__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
        extra="forbid",
    )

    registry: RegistrySettings = RegistrySettings()
    fetcher: FetcherSettings = FetcherSettings()
    cache: CacheSettings = CacheSettings()
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
            # dotenv and file secrets intentionally excluded
        )
