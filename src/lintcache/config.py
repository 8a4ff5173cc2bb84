# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the analysis cache."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from lintcache.store import CACHE_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".lintcache.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for cached analysis runs.

    Loads configuration from .lintcache.yml with validation and defaults.
    Invalid values in the file are logged and replaced by defaults; invalid
    explicit overrides passed to the constructor raise ConfigurationError.
    """

    DEFAULTS = {
        "enabled": True,
        "cache_location": ".lintcache",
        "cache_filename": CACHE_FILENAME,
        "max_workers": 4,
        "log_level": "INFO",
    }

    MAX_WORKERS_LIMIT = 64

    LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

    def __init__(
        self,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
            overrides: Values that take precedence over the file, validated
                       strictly.

        Raises:
            ConfigurationError: If an override is unknown or invalid.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

        for key, value in (overrides or {}).items():
            if key not in self.DEFAULTS:
                raise ConfigurationError(f"Unknown configuration parameter '{key}'")
            if not self._validate_parameter(key, value):
                raise ConfigurationError(f"Invalid value for '{key}': {value!r}")
            self._config[key] = value

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self.DEFAULTS.copy()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self.DEFAULTS.copy()
                return

            # Start with defaults and override with loaded values
            self._config = self.DEFAULTS.copy()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
        except OSError as e:
            logger.warning(
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        if not isinstance(value, expected_type):
            return False
        # bool is a subclass of int
        if expected_type is int and isinstance(value, bool):
            return False

        if key == "max_workers":
            return bool(0 < value <= self.MAX_WORKERS_LIMIT)
        elif key in ("cache_location", "cache_filename"):
            if not value.strip() or "\0" in value:
                return False
            if key == "cache_filename":
                return "/" not in value and "\\" not in value and value not in (".", "..")
            return True
        elif key == "log_level":
            return value.upper() in self.LOG_LEVELS

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Resolved configuration as a plain dict (suitable for hash_config())."""
        return self._config.copy()

    @property
    def enabled(self) -> bool:
        """Whether caching is enabled."""
        value = self._config["enabled"]
        assert isinstance(value, bool)
        return value

    @property
    def cache_location(self) -> str:
        """Directory holding the cache file."""
        value = self._config["cache_location"]
        assert isinstance(value, str)
        return value

    @property
    def cache_filename(self) -> str:
        """Cache file name within cache_location."""
        value = self._config["cache_filename"]
        assert isinstance(value, str)
        return value

    @property
    def cache_path(self) -> Path:
        """Full path of the cache file.

        A relative cache_location is resolved against the directory of the
        configuration file.
        """
        location = Path(self.cache_location).expanduser()
        if not location.is_absolute():
            location = self.config_path.parent / location
        return location / self.cache_filename

    @property
    def max_workers(self) -> int:
        """Number of worker threads analyzing documents."""
        value = self._config["max_workers"]
        assert isinstance(value, int)
        return value

    @property
    def log_level(self) -> int:
        """Logging level used when run_cached_analysis() sets up logging."""
        value = self._config["log_level"]
        assert isinstance(value, str)
        level = getattr(logging, value.upper())
        assert isinstance(level, int)
        return level
