"""Configuration management for campus2career."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, validate_config_file
from .models import (
    ApiConfig,
    AppConfig,
    EmailConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MarketplaceConfig,
    ReconciliationConfig,
    TasksConfig,
)

__all__ = [
    "ApiConfig",
    "AppConfig",
    "ConfigurationError",
    "EmailConfig",
    "EnvironmentConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "MarketplaceConfig",
    "ReconciliationConfig",
    "TasksConfig",
    "load_config",
    "load_environment_config",
    "validate_config_file",
]
