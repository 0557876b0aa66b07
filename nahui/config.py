"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from nahui.utils.logging import DEFAULT_REDACT_KEYS
from nahui.utils.platform import get_config_dir


class ServerConfig(BaseModel):
    bind: str = "0.0.0.0"
    port: int = 3000
    webhook_path: str = "/nahui-gpt/income"
    health_path: str = "/health"
    max_body_bytes: int = 10 * 1024 * 1024
    shutdown_timeout: float = 10.0
    trust_proxy: bool = False
    access_log: bool = True
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class MongoConfig(BaseModel):
    """Document store connection. An empty url leaves persistence off."""
    url: str = ""
    username: str = ""
    password: str = ""
    default_database: str = "webhook-server"
    collection_prefix: str = "nahui-gpt"
    server_selection_timeout_ms: int = 5000

    @property
    def collection_name(self) -> str:
        return f"{self.collection_prefix}-requests"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NAHUI_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    mongo: MongoConfig = Field(default_factory=MongoConfig)
    environment: str = "production"
    log_level: str = "INFO"
    log_json: bool = False
    log_redact: bool = True
    redact_keys: list[str] = Field(default_factory=lambda: list(DEFAULT_REDACT_KEYS))

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def active_redact_keys(self) -> list[str]:
        return self.redact_keys if self.log_redact else []

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # NAHUI_* env vars win over values passed in (YAML + plain env)
        return env_settings, init_settings, dotenv_settings, file_secret_settings


# Conventional unprefixed variables, as set by most container platforms
_PLAIN_ENV: dict[str, tuple[str, ...]] = {
    "PORT": ("server", "port"),
    "MONGO_URL": ("mongo", "url"),
    "MONGO_USERNAME": ("mongo", "username"),
    "MONGO_PASSWORD": ("mongo", "password"),
    "NODE_ENV": ("environment",),
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _plain_env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for name, path in _PLAIN_ENV.items():
        value = environ.get(name)
        if not value:
            continue
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = value
    return overrides


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from YAML, plain env vars and NAHUI_* env vars.

    Precedence, lowest first: defaults, YAML file, ``PORT``/``MONGO_URL``
    style variables, ``NAHUI_*`` variables.
    """
    yaml_data: dict[str, Any] = {}

    # Determine config file path
    if config_path is None:
        config_path = os.environ.get("NAHUI_CONFIG")
    if config_path is None:
        default = get_config_dir() / "config.yaml"
        if default.exists():
            config_path = default

    # Load YAML if found
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    return Settings(**_deep_merge(yaml_data, _plain_env_overrides()))
