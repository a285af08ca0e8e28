"""Settings for storage access.

Settings come from a YAML file (``--config``, ``$TO_STORAGE_CONFIG`` or
``~/.to-storage/config.yaml``) with environment overrides on top, the same
way AZURE_STORAGE_CONNECTION_STRING is honoured by the Azure tooling.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .constants import (
    CONFIG_DIR,
    CONFIG_ENV_VAR,
    CONFIG_FILE,
    CONNECTION_STRING_ENV_VAR,
    COPY_POLL_INTERVAL,
    PROVIDER_ENV_VAR,
)
from .errors import ConfigError

PROVIDERS = ("azure", "fs")
PUBLIC_ACCESS_LEVELS = ("blob", "container")


class StorageSettings(BaseModel):
    """
    Where and how to store uploads.

    Credentials for Azure are either a connection string or an account
    name plus key. ``public_access`` is applied only when a container is
    created; None creates private containers.
    """
    provider: str = "azure"                   # "azure" | "fs"
    connection_string: Optional[str] = None
    account_name: Optional[str] = None
    account_key: Optional[str] = None
    fs_root: str = CONFIG_DIR                  # Base directory for provider "fs"
    public_access: Optional[str] = "blob"      # "blob" | "container" | None
    copy_poll_interval: float = COPY_POLL_INTERVAL

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in PROVIDERS:
            raise ValueError(f"provider must be one of {', '.join(PROVIDERS)}, got '{v}'")
        return v

    @field_validator("public_access")
    @classmethod
    def validate_public_access(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v.strip().lower() in ("", "none", "private"):
            return None
        v = v.strip().lower()
        if v not in PUBLIC_ACCESS_LEVELS:
            raise ValueError(f"public_access must be blob, container or none, got '{v}'")
        return v

    @field_validator("copy_poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("copy_poll_interval must be positive")
        return v

    @property
    def has_azure_credentials(self) -> bool:
        return bool(self.connection_string or (self.account_name and self.account_key))


def default_config_path() -> Path:
    """Resolve the settings file location (env var wins over home directory)."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path.home() / CONFIG_DIR / CONFIG_FILE


def load_settings(path: Optional[Path] = None, **overrides) -> StorageSettings:
    """
    Load settings from YAML, then apply environment and explicit overrides.

    Precedence, lowest first: file, environment, ``overrides`` (values that
    are None are ignored).

    Args:
        path: Settings file; a missing default file is not an error
        **overrides: Field values from the caller, e.g. CLI options

    Raises:
        ConfigError: If the file is unreadable or a value is invalid
    """
    explicit = path is not None
    cfg_path = Path(path) if explicit else default_config_path()

    data = {}
    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {cfg_path} must contain a mapping")
        data = data.get("storage", data)
    elif explicit:
        raise ConfigError(f"Settings file not found: {cfg_path}")

    if os.environ.get(PROVIDER_ENV_VAR):
        data["provider"] = os.environ[PROVIDER_ENV_VAR]
    if os.environ.get(CONNECTION_STRING_ENV_VAR):
        data["connection_string"] = os.environ[CONNECTION_STRING_ENV_VAR]

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return StorageSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid storage settings: {e}") from e
