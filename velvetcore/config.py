"""Configuration management for VelvetCore: pydantic-settings + TOML."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from velvetcore.constants import (
    CLIENT_INFO,
    CONFIG_FILE,
    IDENTITY_FILE,
    OWNER_CONTEXT_RPC,
    OWNER_ID_STORAGE_KEY,
    OWNER_SETTING,
)


class StoreConfig(BaseSettings):
    """Remote store credentials. Read from SUPABASE_URL / SUPABASE_ANON_KEY."""

    url: str = ""
    anon_key: str = ""
    client_info: str = CLIENT_INFO
    owner_setting: str = OWNER_SETTING
    owner_context_rpc: str = OWNER_CONTEXT_RPC
    # None means requests wait for the store indefinitely
    request_timeout_seconds: float | None = None

    model_config = {"env_prefix": "SUPABASE_"}

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("Request timeout must be positive (or unset for no timeout)")
        return v

    @property
    def has_credentials(self) -> bool:
        return bool(self.url and self.anon_key)


class IdentityConfig(BaseSettings):
    storage_file: Path = IDENTITY_FILE
    storage_key: str = OWNER_ID_STORAGE_KEY

    model_config = {"env_prefix": "VELVETCORE_IDENTITY_"}


class LoggingConfig(BaseSettings):
    level: str = "INFO"
    format: str = "json"
    redact_secrets: bool = True  # CRITICAL: Always True in production

    model_config = {"env_prefix": "VELVETCORE_LOG_"}

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("json", "console"):
            raise ValueError("Log format must be 'json' or 'console'")
        return v


class VelvetCoreConfig(BaseSettings):
    """Root configuration for VelvetCore. Loads from TOML + env vars."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_prefix": "VELVETCORE_"}


def load_config(config_path: Path | None = None) -> VelvetCoreConfig:
    """
    Load configuration from TOML files layered over environment variables.

    Priority (highest to lowest):
    1. User config file (~/.velvetcore/config.toml, or config_path)
    2. Default config (config/default.toml)
    3. Environment variables (SUPABASE_*, VELVETCORE_*)
    4. Built-in defaults
    """
    merged: dict[str, Any] = {}

    default_path = Path(__file__).parent.parent / "config" / "default.toml"
    if default_path.exists():
        merged = _read_toml(default_path)

    user_path = config_path or CONFIG_FILE
    if user_path.exists():
        merged = _deep_merge(merged, _read_toml(user_path))

    return VelvetCoreConfig(
        store=StoreConfig(**merged.get("store", {})),
        identity=IdentityConfig(**merged.get("identity", {})),
        logging=LoggingConfig(**merged.get("logging", {})),
    )


def _read_toml(path: Path) -> dict[str, Any]:
    import tomli

    try:
        with open(path, "rb") as f:
            return tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Override values take precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigError(Exception):
    """Raised when a configuration file cannot be parsed."""

    pass
