"""Configuration loading from YAML files, environment variables and CLI overrides."""

import os
from pathlib import Path
from typing import Dict, Any, Optional

import yaml
from pydantic import ValidationError

from .types import SpecstormConfig
from .errors import ConfigurationError

ENV_PREFIX = "SPECSTORM_"

# Variables under the prefix that are runtime wiring, not configuration.
_RESERVED_ENV = {"SPECSTORM_FLUSH_DELIMITER", "SPECSTORM_PROCESS"}


def load_env_overrides(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """Collect ``SPECSTORM_*`` variables that name config fields."""
    fields = set(SpecstormConfig.model_fields)
    overrides = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix) or key in _RESERVED_ENV:
            continue
        field_name = key[len(prefix) :].lower()
        if field_name in fields:
            overrides[field_name] = _convert_env_value(value)
    return overrides


def _convert_env_value(value: str) -> Any:
    """Convert string environment value to appropriate Python type."""
    if not value:
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    return value


class ConfigManager:
    """Central configuration management."""

    def __init__(self) -> None:
        self._config: Optional[SpecstormConfig] = None

    def load_config(
        self, config_file: Optional[Path] = None, **overrides: Any
    ) -> SpecstormConfig:
        """Load configuration from file and environment with CLI overrides.

        Precedence, highest first: CLI overrides, environment variables,
        config file, model defaults. ``None`` overrides are ignored so that
        unset CLI options do not mask lower layers.
        """
        config_data: Dict[str, Any] = {}

        if config_file is not None:
            if not config_file.exists():
                raise ConfigurationError(f"Config file not found: {config_file}")
            config_data.update(self._load_from_file(config_file))

        config_data.update(
            {k: v for k, v in load_env_overrides().items() if v is not None}
        )
        config_data.update({k: v for k, v in overrides.items() if v is not None})

        try:
            self._config = SpecstormConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e}", details={"data": config_data}
            ) from e
        return self._config

    def get_config(self) -> SpecstormConfig:
        """Get current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def reset(self) -> None:
        """Drop the cached configuration."""
        self._config = None

    def _load_from_file(self, config_file: Path) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if config_file.suffix.lower() not in (".yml", ".yaml"):
            raise ConfigurationError(
                f"Unsupported config file format: {config_file.suffix}"
            )
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load config file {config_file}: {e}"
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {config_file} must contain a mapping"
            )
        return data


_config_manager = ConfigManager()


def load_config(**kwargs: Any) -> SpecstormConfig:
    """Load global configuration."""
    return _config_manager.load_config(**kwargs)
