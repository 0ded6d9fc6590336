"""Toolhub Core - MCP client subsystem.

Connects to MCP tool servers over stdio or HTTP, discovers their tools
and presents them to a calling agent as one catalog.
"""

__version__ = "0.1.0"

from toolhub_core.application import ToolhubApplication  # noqa: E402

__all__ = ["__version__", "ToolhubApplication"]
