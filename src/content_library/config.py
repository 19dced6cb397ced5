"""
Reading settings from environment variables and YAML config/secrets files.

Layering, lowest to highest priority:

1. field defaults
2. ``content-library.config.yaml`` (discovered from the working directory upward)
3. ``content-library.secrets.yaml`` beside the config file
4. ``CONTENT_LIBRARY_*`` environment variables (``__`` separates nested keys)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from content_library.constants import (
    CONFIG_FILENAME,
    DEFAULT_CATALOG_TIMEOUT,
    DEFAULT_CATALOG_URL,
    DEFAULT_STORE_TIMEOUT,
    DEFAULT_TENANT_ID,
    SECRETS_FILENAME,
)


class CatalogSettings(BaseModel):
    """Where the published pack catalog lives."""

    base_url: str = DEFAULT_CATALOG_URL
    """HTTP(S) URL, file:// URL or local directory containing index.json"""

    timeout: float = DEFAULT_CATALOG_TIMEOUT

    model_config = ConfigDict(extra="ignore")


class StoreSettings(BaseModel):
    """Connection to the tenant's backing store."""

    base_url: str | None = None
    """REST root, e.g. https://<project>.supabase.co/rest/v1"""

    api_key: str | None = None
    tenant_id: str = DEFAULT_TENANT_ID
    """Organization the ledger and all entry reads/writes are scoped to"""

    owner_id: str | None = None
    """Profile id used as owner when authoring libraries"""

    timeout: float = DEFAULT_STORE_TIMEOUT

    model_config = ConfigDict(extra="ignore")


class LoggerSettings(BaseModel):
    """Logger settings for the content library."""

    type: Literal["none", "console", "file"] = "console"

    level: Literal["debug", "info", "warning", "error"] = "warning"

    path: str = "content-library.log"
    """Path to the log file, if type is 'file'"""

    model_config = ConfigDict(extra="ignore")


class Settings(BaseSettings):
    """
    Settings class for the content library. Values can be provided through
    environment variables or the YAML config file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTENT_LIBRARY_",
        env_nested_delimiter="__",
        extra="allow",
        nested_model_default_partial_update=True,
    )

    environment_dir: str | None = None
    """Directory holding ledgers and other local state (default .content-library)"""

    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    logger: LoggerSettings = Field(default_factory=LoggerSettings)

    config_file: str | None = Field(default=None, exclude=True)
    """Config file the settings were loaded from, if any"""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; the environment overrides them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def find_config(cls, start: Path | None = None) -> Path | None:
        """Find the config file in the given directory or any parent."""
        current = (start or Path.cwd()).resolve()
        for directory in (current, *current.parents):
            candidate = directory / CONFIG_FILENAME
            if candidate.is_file():
                return candidate
        return None


# Global settings object
_settings: Settings | None = None


def deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``update`` into ``base``; returns ``base``."""
    for key, value in update.items():
        existing = base.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            deep_merge(existing, value)
        else:
            base[key] = value
    return base


def _load_yaml_mapping(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def get_settings(config_path: str | None = None) -> Settings:
    """Get settings instance, loading from config files on first use."""
    global _settings

    if config_path is None and _settings is not None:
        return _settings

    resolved_path: Path | None
    if config_path:
        resolved_path = Path(config_path).expanduser()
    else:
        resolved_path = Settings.find_config()

    merged: dict[str, Any] = {}
    if resolved_path is not None and resolved_path.exists():
        merged = _load_yaml_mapping(resolved_path)
        secrets_path = resolved_path.parent / SECRETS_FILENAME
        if secrets_path.exists():
            deep_merge(merged, _load_yaml_mapping(secrets_path))
        merged["config_file"] = str(resolved_path)

    _settings = Settings(**merged)
    return _settings


def update_global_settings(settings: Settings | None) -> None:
    """Replace the cached settings; ``None`` forces a reload on next access."""
    global _settings
    _settings = settings
