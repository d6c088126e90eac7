"""
Configuration management for the adminapi client.

Configuration is loaded from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (lowest priority)

Environment variables:
- SERVERADMIN_BASE_URL: Service URL, e.g. https://serveradmin.example.com
- SERVERADMIN_TOKEN: Shared secret for HMAC request signing
- SERVERADMIN_KEY_PATH: OpenSSH private key for SSH request signing
- SERVERADMIN_CONFIG: Path of the YAML config file
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from adminapi.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Client settings."""

    model_config = SettingsConfigDict(
        env_prefix="SERVERADMIN_",
        extra="ignore",
    )

    base_url: str | None = None
    token: str | None = None
    key_path: Path | None = None
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    log_json: bool = False

    @field_validator("base_url")
    @classmethod
    def strip_api_suffix(cls, v: str | None) -> str | None:
        """Reduce the URL to the service root; endpoints add ``/api/...``."""
        if v is None:
            return None
        v = v.strip().rstrip("/")
        if v.endswith("/api"):
            v = v[: -len("/api")]
        return v or None

    @field_validator("token")
    @classmethod
    def empty_token_is_unset(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def require_base_url(self) -> str:
        if not self.base_url:
            raise ConfigurationError("env var SERVERADMIN_BASE_URL not set")
        return self.base_url

    def masked(self) -> dict[str, Any]:
        """Settings as a dict with the token hidden, for display."""
        data = self.model_dump(mode="json")
        if data.get("token"):
            data["token"] = "****"
        return data


def config_file_candidates() -> list[Path]:
    """Config file locations in lookup order."""
    candidates = []
    explicit = os.environ.get("SERVERADMIN_CONFIG")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.append(Path("serveradmin.yaml"))
    candidates.append(Path.home() / ".config" / "serveradmin" / "config.yaml")
    return candidates


def load_yaml_config(path: Path | None = None) -> dict:
    """Load configuration from a YAML file."""
    if path is None:
        for candidate in config_file_candidates():
            if candidate.exists():
                path = candidate
                break

    if path and path.exists():
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Config file is not valid YAML: {e}", details={"path": str(path)}
                ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Config file must contain a mapping", details={"path": str(path)}
            )
        return data

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    yaml_config = load_yaml_config()

    # Environment variables take precedence over the file
    overridden = {
        name for name in Settings.model_fields
        if f"SERVERADMIN_{name.upper()}" in os.environ
    }
    file_values = {k: v for k, v in yaml_config.items() if k not in overridden}
    return Settings(**file_values)


def reload_settings() -> Settings:
    """Force reload of settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
