"""
TLV Engine - Configuration Management

Configuration for the TLV Engine service, loadable from YAML files
and environment variables.
"""

import os
import yaml
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from pathlib import Path
from enum import Enum
import logging

from .exceptions import ConfigurationException

logger = logging.getLogger(__name__)

# 10 MB of payload, two hex characters per byte
DEFAULT_MAX_DATA_LENGTH = 20 * 1024 * 1024


class Environment(str, Enum):
    """Environment types for configuration."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "on", "1"):
        return True
    if text in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


@dataclass
class TlvEngineConfig:
    """Service configuration."""

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False
    log_level: LogLevel = LogLevel.INFO
    service_name: str = "tlv-engine"
    version: str = "2.0.0"

    # REST API
    rest_host: str = "0.0.0.0"
    rest_port: int = 3000
    api_prefix: str = "/api/tlv"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # Limits
    max_data_length: int = DEFAULT_MAX_DATA_LENGTH

    # Monitoring
    enable_metrics: bool = True

    @classmethod
    def load_from_file(cls, config_path: Union[str, Path]) -> "TlvEngineConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigurationException(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}

            return cls._from_dict(config_data)

        except yaml.YAMLError as e:
            raise ConfigurationException(f"Invalid YAML in configuration file: {e}")
        except ConfigurationException:
            raise
        except Exception as e:
            raise ConfigurationException(f"Error loading configuration file: {e}")

    @classmethod
    def load_from_env(cls, prefix: str = "TLV_ENGINE_") -> "TlvEngineConfig":
        """Load configuration from environment variables."""
        config = cls()

        try:
            config.environment = Environment(
                os.getenv(f"{prefix}ENVIRONMENT", config.environment.value)
            )
            config.log_level = LogLevel(
                os.getenv(f"{prefix}LOG_LEVEL", config.log_level.value).upper()
            )
            config.rest_port = int(os.getenv(f"{prefix}PORT", str(config.rest_port)))
            config.max_data_length = int(
                os.getenv(f"{prefix}MAX_DATA_LENGTH", str(config.max_data_length))
            )
        except ValueError as e:
            raise ConfigurationException(f"Invalid environment configuration: {e}")

        config.debug = os.getenv(f"{prefix}DEBUG", str(config.debug)).lower() == "true"
        config.enable_metrics = (
            os.getenv(f"{prefix}ENABLE_METRICS", str(config.enable_metrics)).lower()
            == "true"
        )
        config.rest_host = os.getenv(f"{prefix}HOST", config.rest_host)
        config.api_prefix = os.getenv(f"{prefix}API_PREFIX", config.api_prefix)

        if os.getenv(f"{prefix}CORS_ORIGINS"):
            config.cors_origins = [
                origin.strip()
                for origin in os.getenv(f"{prefix}CORS_ORIGINS", "").split(",")
                if origin.strip()
            ]

        return config

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "TlvEngineConfig":
        """Create configuration from dictionary."""
        config = cls()

        try:
            if "environment" in data:
                config.environment = Environment(data["environment"])
            if "log_level" in data:
                config.log_level = LogLevel(str(data["log_level"]).upper())
            for key in ["rest_port", "max_data_length"]:
                if key in data:
                    setattr(config, key, int(data[key]))
            for key in ["debug", "enable_metrics"]:
                if key in data:
                    setattr(config, key, _to_bool(data[key]))
        except (ValueError, TypeError) as e:
            raise ConfigurationException(f"Invalid configuration value: {e}")

        for key in ["service_name", "version", "rest_host", "api_prefix", "cors_origins"]:
            if key in data:
                setattr(config, key, data[key])

        if isinstance(config.cors_origins, str):
            config.cors_origins = [config.cors_origins]

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "environment": self.environment.value,
            "debug": self.debug,
            "log_level": self.log_level.value,
            "service_name": self.service_name,
            "version": self.version,
            "rest_host": self.rest_host,
            "rest_port": self.rest_port,
            "api_prefix": self.api_prefix,
            "cors_origins": list(self.cors_origins),
            "max_data_length": self.max_data_length,
            "enable_metrics": self.enable_metrics,
        }

    def validate(self) -> None:
        """Validate configuration settings."""
        errors = []

        if not 0 < self.rest_port < 65536:
            errors.append("REST port must be between 1 and 65535")
        if self.max_data_length <= 0:
            errors.append("Maximum data length must be positive")
        if not self.api_prefix.startswith("/"):
            errors.append("API prefix must start with '/'")

        if errors:
            raise ConfigurationException(
                f"Configuration validation failed: {'; '.join(errors)}"
            )


# Global configuration instance
_config: Optional[TlvEngineConfig] = None


def get_config() -> TlvEngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = TlvEngineConfig.load_from_env()
    return _config


def set_config(config: TlvEngineConfig) -> None:
    """Set the global configuration instance."""
    global _config
    config.validate()
    _config = config


def load_config(config_path: Union[str, Path]) -> TlvEngineConfig:
    """Load and set configuration from file."""
    config = TlvEngineConfig.load_from_file(config_path)
    set_config(config)
    logger.info(f"Configuration loaded from {config_path}")
    return config
