"""Toolhub Application - wires configuration, logging and the MCP manager.

This is the entry point an embedding agent uses: it loads the config,
connects to every configured MCP server and exposes the combined tool
surface through ``mcp_manager``.
"""

import sys
from pathlib import Path
from typing import Any, TextIO

from toolhub_core.config import ConfigLoader, ToolhubConfig
from toolhub_core.errors import ErrorFactory, ErrorRegistry
from toolhub_core.logging import LogConfig, ToolhubLogger
from toolhub_core.mcp import MCPClientManager
from toolhub_core.types import ClientState


class ToolhubApplication:
    """
    Toolhub Application orchestrator.

    Initialization sequence:

    1. Config loading
    2. Logger setup
    3. Error registry
    4. MCP client manager (connects to MCP servers)
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        log_output: TextIO | None = None,
    ):
        """Initialize application.

        Args:
            config_path: Path to config file (optional)
            log_output: Output stream for logs (default: sys.stderr)
        """
        self._config_path = config_path
        self._log_output = log_output or sys.stderr
        self._initialized = False

        # Components (initialized in initialize())
        self.config_loader: ConfigLoader | None = None
        self.config: ToolhubConfig | None = None
        self.logger: ToolhubLogger | None = None
        self.error_registry: ErrorRegistry | None = None
        self.error_factory: ErrorFactory | None = None
        self.mcp_manager: MCPClientManager | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> dict[str, Any]:
        """Initialize all components and connect to the MCP servers.

        Returns:
            Server name to state value for every attempted server

        Raises:
            ToolhubError: If the config file exists but cannot be parsed
        """
        if self._initialized and self.mcp_manager:
            return {name: s.state.value for name, s in self.mcp_manager.get_status().items()}

        # 1. Config Loader (logs through a default logger until the real one exists)
        self.config_loader = ConfigLoader(
            logger=ToolhubLogger(LogConfig(output=self._log_output))
        )
        self.config = self.config_loader.load(self._config_path)

        # 2. Logger
        logging_config = self.config.logging
        log_config = LogConfig(
            level=logging_config.level,
            format=logging_config.format,
            show_params=logging_config.options.show_params,
            show_results=logging_config.options.show_results,
            truncate_at=logging_config.options.truncate_at,
            components={
                "transport": logging_config.components.transport,
                "client": logging_config.components.client,
                "manager": logging_config.components.manager,
                "tool": logging_config.components.tool,
                "config": logging_config.components.config,
            },
            output=self._log_output,
        )
        self.logger = ToolhubLogger(log_config)

        # 3. Error Registry & Factory
        self.error_registry = ErrorRegistry()
        self.error_factory = ErrorFactory(self.error_registry)

        # 4. MCP Client Manager
        self.mcp_manager = MCPClientManager(
            self.config.tools,
            logger=self.logger,
            error_factory=self.error_factory,
        )
        statuses = await self.mcp_manager.initialize()

        self._initialized = True
        return {name: status.state.value for name, status in statuses.items()}

    def is_available(self) -> bool:
        """True when at least one MCP server is ready."""
        return bool(self.mcp_manager and self.mcp_manager.is_available())

    def ready_servers(self) -> list[str]:
        if not self.mcp_manager:
            return []
        return [
            name
            for name, status in self.mcp_manager.get_status().items()
            if status.state == ClientState.READY
        ]

    async def shutdown(self) -> None:
        """Shutdown all components."""
        if not self._initialized:
            return

        if self.mcp_manager:
            await self.mcp_manager.close()

        self._initialized = False

    async def __aenter__(self) -> "ToolhubApplication":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()
