"""Toolhub configuration - models and loader."""

from .loader import ConfigLoader, get_config_loader, load_config, resolve_env_vars
from .models import (
    DEFAULT_TIMEOUT_MS,
    LoggingComponentsConfig,
    LoggingConfig,
    LoggingOptionsConfig,
    MCPServerDefinition,
    ToolhubConfig,
    ToolsConfig,
)

__all__ = [
    # Loader
    "ConfigLoader",
    "get_config_loader",
    "load_config",
    "resolve_env_vars",
    # Models
    "DEFAULT_TIMEOUT_MS",
    "MCPServerDefinition",
    "ToolsConfig",
    "LoggingConfig",
    "LoggingComponentsConfig",
    "LoggingOptionsConfig",
    "ToolhubConfig",
]
