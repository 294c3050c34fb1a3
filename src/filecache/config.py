"""Configuration loading with environment variable substitution."""

import json
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from filecache.exceptions import ConfigError
from filecache.observability import LogLevel, configure_logging

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")

DEFAULT_STORE_PATH = "store/cache.db"


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class FileStoreSettings(BaseModel):
    """Settings for the ``file`` driver.

    ``store`` takes precedence over ``file``; empty strings count as unset.
    """

    model_config = ConfigDict(extra="ignore")

    store: str | None = None
    file: str | None = None

    def resolve_path(self) -> str:
        """Return the store path these settings select."""
        if self.store:
            return self.store
        if self.file:
            return self.file
        return DEFAULT_STORE_PATH


class LoggingConfig(BaseModel):
    """Logging output settings."""

    level: LogLevel = LogLevel.INFO
    format: str = "json"  # json | text


class Config(BaseModel):
    """Main configuration for filecache."""

    driver: str = "file"
    settings: dict[str, Any] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def apply_logging(self) -> None:
        """Configure the ``filecache`` logger from the logging section."""
        configure_logging(self.logging.level, self.logging.format)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        try:
            with path.open() as f:
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data)
        return cls.model_validate(data)
