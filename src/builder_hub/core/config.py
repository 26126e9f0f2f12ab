"""Configuration management for AWS Builder Hub.

This module handles YAML configuration loading, validation, and
environment variable overrides for the broker identity, the verification
session and the account registry database.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml


MAX_SESSION_DURATION_SECONDS = 900
DEFAULT_SESSION_NAME = "aws-builder-hub-verification"
DEFAULT_RESOURCE_REGIONS = ["ap-northeast-2", "ap-northeast-1", "us-east-1"]
DEFAULT_DATABASE_URL = "sqlite:///builder-hub.db"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Configuration:
    """Configuration management with YAML loading and validation.

    Values are read with dot notation (``config.get("aws.region")``).
    Environment variables override the file for the broker region, the
    broker profile and the database URL.
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        If None, auto-detects config.yaml in current directory.

        Raises:
            ConfigurationError: When configuration file is invalid
        """
        self._config: Dict[str, Any] = {}
        self._config_path = self._resolve_config_path(config_path)
        self._load_configuration()
        self._apply_environment_overrides()
        self._validate_configuration()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path.

        Raises:
            ConfigurationError: When configuration file not found
        """
        if config_path:
            path = Path(config_path)
        else:
            path = Path("config.yaml")
            if not path.exists():
                path = Path("config/settings.yaml")

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}. "
                "Please create a configuration file or specify a valid path."
            )

        return path

    def _load_configuration(self) -> None:
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: When YAML file is invalid
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file {self._config_path}: {e}"
            )
        except IOError as e:
            raise ConfigurationError(
                f"Unable to read configuration file {self._config_path}: {e}"
            )

        if not isinstance(self._config, dict):
            raise ConfigurationError(
                f"Configuration file {self._config_path} must contain a mapping"
            )

    def _validate_configuration(self) -> None:
        """Validate configuration has required fields.

        Raises:
            ConfigurationError: When required fields are missing or invalid
        """
        if "aws" not in self._config:
            raise ConfigurationError("Required configuration section 'aws' is missing")

        aws_config = self._config["aws"]
        if not isinstance(aws_config, dict):
            raise ConfigurationError("Configuration section 'aws' must be a mapping")

        if "region" not in aws_config:
            raise ConfigurationError("Required field 'aws.region' is missing")

        region = aws_config["region"]
        if not isinstance(region, str) or not region:
            raise ConfigurationError("Field 'aws.region' must be a non-empty string")

        if "resource_regions" in aws_config:
            if not isinstance(aws_config["resource_regions"], list):
                raise ConfigurationError("Field 'aws.resource_regions' must be a list")

        duration = self.get("verification.duration_seconds")
        if duration is not None:
            if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
                raise ConfigurationError(
                    "Field 'verification.duration_seconds' must be a positive integer"
                )
            if duration > MAX_SESSION_DURATION_SECONDS:
                raise ConfigurationError(
                    "Field 'verification.duration_seconds' must not exceed "
                    f"{MAX_SESSION_DURATION_SECONDS}"
                )

    def _apply_environment_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if "AWS_REGION" in os.environ:
            self._set_nested_value("aws.region", os.environ["AWS_REGION"])

        if "AWS_PROFILE" in os.environ:
            self._set_nested_value("aws.profile_name", os.environ["AWS_PROFILE"])

        if "BUILDER_HUB_DATABASE_URL" in os.environ:
            self._set_nested_value(
                "database.url", os.environ["BUILDER_HUB_DATABASE_URL"]
            )

    def _set_nested_value(self, key_path: str, value: Any) -> None:
        """Set nested configuration value using dot notation."""
        keys = key_path.split(".")
        current = self._config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.region')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_region(self) -> str:
        """Get the broker region."""
        return self.get("aws.region")

    def get_profile_name(self) -> Optional[str]:
        """Get the broker profile name, if any."""
        return self.get("aws.profile_name")

    def get_resource_regions(self) -> List[str]:
        """Get regions scanned by resource listing."""
        regions = self.get("aws.resource_regions")
        if not regions:
            regions = list(DEFAULT_RESOURCE_REGIONS)
        return regions

    def get_session_name(self) -> str:
        """Get the role session name used for verification."""
        return self.get("verification.session_name") or DEFAULT_SESSION_NAME

    def get_session_duration(self) -> int:
        """Get the verification session duration in seconds."""
        return self.get("verification.duration_seconds", MAX_SESSION_DURATION_SECONDS)

    def get_database_url(self) -> str:
        """Get the SQLAlchemy URL of the account registry."""
        return self.get("database.url") or DEFAULT_DATABASE_URL

    def to_dict(self) -> Dict[str, Any]:
        """Get complete configuration as dictionary."""
        return self._config.copy()
