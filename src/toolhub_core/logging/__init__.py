"""Toolhub Logging - component-scoped colored logging."""

from .colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from .logger import LogConfig, ServerLogger, ToolhubLogger, ToolLogger

__all__ = [
    # Logger classes
    "ToolhubLogger",
    "ServerLogger",
    "ToolLogger",
    "LogConfig",
    # Colors
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
