"""Configuration manager for loading and validating .retryflow.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from retryflow.domain.config import AppConfig, HttpConfig, RetryConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".retryflow.yml"

# Environment variable -> (section, key, type)
ENV_OVERRIDES = {
    "RETRYFLOW_MAX_ATTEMPTS": ("retry", "max_attempts", int),
    "RETRYFLOW_BASE_DELAY": ("retry", "base_delay", float),
    "RETRYFLOW_MAX_DELAY": ("retry", "max_delay", float),
    "RETRYFLOW_BACKOFF_MULTIPLIER": ("retry", "backoff_multiplier", float),
    "RETRYFLOW_JITTER_FACTOR": ("retry", "jitter_factor", float),
    "RETRYFLOW_TOTAL_TIMEOUT": ("retry", "total_timeout", float),
    "RETRYFLOW_HTTP_TIMEOUT": ("http", "timeout", float),
}


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


class ConfigManager:
    """Manages configuration from .retryflow.yml and environment variables

    Loads configuration with validation using Pydantic models. Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .retryflow.yml file (searched from current directory upwards)
    3. Environment variables (RETRYFLOW_*)
    4. CLI arguments (handled by CLI layer)
    """

    DEFAULT_CONFIG = {
        "retry": RetryConfig().model_dump(),
        "http": HttpConfig().model_dump(),
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .retryflow.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                msg = error["msg"]
                errors.append(f"  - {field}: {msg}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

    def _find_config_file(self) -> Optional[Path]:
        """Find .retryflow.yml starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Raises:
            ValidationError: If configuration is invalid
            ConfigurationError: If the file cannot be parsed
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    f"Expected a mapping at the top of {self.config_path}, "
                    f"got {type(file_config).__name__}"
                )
            config_dict = self._merge_config(config_dict, file_config)
            logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)

        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply RETRYFLOW_* environment variable overrides

        Raises:
            ConfigurationError: If a variable cannot be converted or its
                section is not a mapping
        """
        for env_name, (section, key, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            if not isinstance(config.get(section), dict):
                raise ConfigurationError(
                    f"Cannot apply {env_name}: configuration section '{section}' must be a mapping"
                )
            try:
                config[section][key] = cast(raw)
            except ValueError as e:
                raise ConfigurationError(f"{env_name}={raw!r} is not a valid {cast.__name__}") from e
            logger.debug(f"{env_name} overrides {section}.{key}")
        return config

    def get_retry_config(self) -> RetryConfig:
        """Get retry configuration"""
        return self.config.retry

    def get_http_config(self) -> HttpConfig:
        """Get HTTP adapter configuration"""
        return self.config.http

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "retry.max_attempts" or "retry")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
