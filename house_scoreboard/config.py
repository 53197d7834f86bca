"""
Configuration management for the house scoreboard.
Supports both JSON file configuration and environment variable overrides.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


class ScoreboardConfig:
    """Configuration management for the house scoreboard."""

    DEFAULT_CONFIG = {
        "scoreboard_name": "House Scoreboard",
        "store": {
            # Path of the SQLite database; empty means not configured
            "database": "",
        },
        "blob_store": {
            "root": "media",
            "base_url": "/media",
        },
        "live_view": {
            "loading_mode": "first_snapshot",  # first_snapshot or settling_delay
            "settling_delay": 1.0,
            "bootstrap_houses": True,
        },
        "reconciliation": {
            "mode": "transactional",  # transactional or snapshot
            "max_retries": 5,
        },
        "web": {
            "host": "0.0.0.0",
            "port": 8081,
        },
        "logging": {
            "level": "INFO",
        },
    }

    def __init__(
        self,
        config_path: str = "scoreboard_config.json",
    ) -> None:
        """Initialize configuration from file, environment variables, or defaults."""
        self.config_path = Path(config_path)
        self.config = self._load_config()
        self._apply_env_overrides()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from JSON file or create default.

        @return: Dictionary containing the loaded configuration
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded_config = json.load(f)

                # Merge with defaults to ensure all keys exist
                config = copy.deepcopy(self.DEFAULT_CONFIG)
                self._deep_merge(config, loaded_config)
                return config

            except (json.JSONDecodeError, IOError) as e:
                logger.error("Error loading config from %s: %s", self.config_path, e)
                logger.warning("Using default configuration")
                return copy.deepcopy(self.DEFAULT_CONFIG)
        else:
            self._create_default_config()
            return copy.deepcopy(self.DEFAULT_CONFIG)

    def _deep_merge(
        self,
        base_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
    ) -> None:
        """
        Recursively merge dictionaries.

        @param base_dict: Base dictionary to merge into
        @param update_dict: Dictionary with updates to merge
        """
        for key, value in update_dict.items():
            if (
                key in base_dict
                and isinstance(base_dict[key], dict)
                and isinstance(value, dict)
            ):
                self._deep_merge(base_dict[key], value)
            else:
                base_dict[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to configuration.

        Environment variables map onto nested keys (e.g., DB_PATH -> store.database).
        """
        env_mappings = {
            "SCOREBOARD_NAME": ("scoreboard_name",),

            # Store configuration; values are never converted
            "DB_PATH": ("store", "database"),
            "MEDIA_ROOT": ("blob_store", "root"),
            "MEDIA_URL": ("blob_store", "base_url"),

            # Live view
            "LOADING_MODE": ("live_view", "loading_mode"),
            "SETTLING_DELAY": ("live_view", "settling_delay"),
            "BOOTSTRAP_HOUSES": ("live_view", "bootstrap_houses"),

            # Reconciliation
            "RECONCILIATION_MODE": ("reconciliation", "mode"),
            "RECONCILIATION_MAX_RETRIES": ("reconciliation", "max_retries"),

            # Web server
            "WEB_HOST": ("web", "host"),
            "WEB_PORT": ("web", "port"),

            "LOG_LEVEL": ("logging", "level"),
        }
        raw_values = {"DB_PATH", "MEDIA_ROOT", "MEDIA_URL", "WEB_HOST", "SCOREBOARD_NAME"}

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                if env_var in raw_values:
                    converted_value: Any = env_value
                else:
                    converted_value = self._convert_env_value(env_value)
                self._set_nested_config(config_path, converted_value)

    def _convert_env_value(self, value: str) -> Any:
        """
        Convert environment variable string to appropriate type.

        @param value: String value from environment variable
        @return: Converted value (bool, int, float, or string)
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _set_nested_config(self, path: tuple, value: Any) -> None:
        """
        Set a nested configuration value using a path tuple.

        @param path: Tuple representing the nested path (e.g., ("web", "port"))
        @param value: Value to set
        """
        current = self.config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _create_default_config(self) -> None:
        """Write the default configuration to the configured file path."""
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.DEFAULT_CONFIG, f, indent=2)
            logger.info("Created default configuration file: %s", self.config_path)
        except IOError as e:
            logger.error("Could not create config file %s: %s", self.config_path, e)

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Invalid values are replaced by their defaults with a warning.
        """
        if self.config["live_view"]["loading_mode"] not in ["first_snapshot", "settling_delay"]:
            logger.warning("Invalid live_view.loading_mode, using 'first_snapshot'")
            self.config["live_view"]["loading_mode"] = "first_snapshot"

        delay = self.config["live_view"]["settling_delay"]
        if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
            logger.warning("Invalid live_view.settling_delay, using 1.0")
            self.config["live_view"]["settling_delay"] = 1.0

        if self.config["reconciliation"]["mode"] not in ["transactional", "snapshot"]:
            logger.warning("Invalid reconciliation.mode, using 'transactional'")
            self.config["reconciliation"]["mode"] = "transactional"

        retries = self.config["reconciliation"]["max_retries"]
        if isinstance(retries, bool) or not isinstance(retries, int) or retries <= 0:
            logger.warning("Invalid reconciliation.max_retries, using 5")
            self.config["reconciliation"]["max_retries"] = 5

        port = self.config["web"]["port"]
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            logger.warning("Invalid web.port, using 8081")
            self.config["web"]["port"] = 8081

        level = str(self.config["logging"]["level"]).upper()
        if level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logger.warning("Invalid logging.level, using 'INFO'")
            level = "INFO"
        self.config["logging"]["level"] = level

        if not self.config["store"]["database"]:
            logger.error(
                "Store configuration error: no database configured. "
                "Set store.database in %s or the DB_PATH environment variable. "
                "Every store operation will fail until this is fixed.",
                self.config_path,
            )

    def get(
        self,
        *keys: str,
    ) -> Any:
        """
        Get nested configuration value.

        @param keys: Variable arguments representing nested keys to traverse
        @return: Configuration value at the specified path, None if not found
        """
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value
