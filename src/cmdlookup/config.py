"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (CMDLOOKUP__STORE__BACKEND=memory)
  2. cmdlookup.yaml         (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("cmdlookup")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "tldr.sqlite")
# Pre-seeded snapshot shipped next to the package; skipped when absent.
_DEFAULT_SNAPSHOT_PATH = str(Path(__file__).parent / "data" / "commands.db")


def _find_config_file() -> str | None:
    """Return the path of the first cmdlookup.yaml found, or None."""
    candidates = [
        Path("cmdlookup.yaml"),
        Path(platformdirs.user_config_dir("cmdlookup")) / "cmdlookup.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class StoreSettings(BaseModel):
    backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: str = _DEFAULT_DB_PATH
    snapshot_path: str | None = _DEFAULT_SNAPSHOT_PATH
    seed_path: str | None = None


class SearchSettings(BaseModel):
    default_limit: int = 10
    max_limit: int = 100
    prefix_match: bool = True


class CacheSettings(BaseModel):
    ttl_seconds: int = 86400
    cleanup_interval_hours: int = 6


class BridgeSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8765
    auth_enabled: bool = False
    auth_key: str = ""
    timeout_seconds: float = 2.0


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: CMDLOOKUP__BRIDGE__PORT=9090
        env_prefix="CMDLOOKUP__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    store: StoreSettings = StoreSettings()
    search: SearchSettings = SearchSettings()
    cache: CacheSettings = CacheSettings()
    bridge: BridgeSettings = BridgeSettings()
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
