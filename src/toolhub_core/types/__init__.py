"""Shared types for toolhub.

Import from here rather than submodules:
    from toolhub_core.types import ClientState, LogLevel, MCPTransport
"""

from .enums import ClientState, LogFormat, LogLevel, MCPTransport
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "MCPTransport",
    "ClientState",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
