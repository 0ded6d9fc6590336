"""MCP Client Manager - one tool surface over many MCP servers."""

import asyncio
from collections.abc import Callable
from typing import Any

from toolhub_core.config.models import MCPServerDefinition, ToolsConfig
from toolhub_core.errors import ErrorFactory, get_error_factory
from toolhub_core.logging.logger import ToolhubLogger
from toolhub_core.types import ClientState, LogLevel

from .client import MCPClient
from .transports import MCPClientTransport, create_transport
from .types import ServerStatus, ToolCallResult, ToolSchema

TransportFactory = Callable[[MCPServerDefinition, ToolhubLogger | None], MCPClientTransport]


class MCPClientManager:
    """Manages all MCP server connections.

    Servers start, fail and answer independently. A server that cannot
    be reached is left out of the combined catalog instead of failing
    the whole manager.

    When two ready servers expose the same tool name, the server listed
    first in the configuration owns it. The combined catalog is rebuilt
    from the per-client caches on every read.
    """

    def __init__(
        self,
        config: ToolsConfig | None = None,
        logger: ToolhubLogger | None = None,
        transport_factory: TransportFactory = create_transport,
        error_factory: ErrorFactory | None = None,
    ):
        """Initialize MCP client manager.

        Args:
            config: Tools configuration
            logger: Optional logger
            transport_factory: Builds a transport from a server definition
            error_factory: Optional error factory
        """
        self._config = config or ToolsConfig()
        self._logger = logger
        self._transport_factory = transport_factory
        self._error_factory = error_factory or get_error_factory()
        self._clients: dict[str, MCPClient] = {}
        # Position of each server name in the configuration; decides collisions
        self._rank: dict[str, int] = {}
        self._failed: dict[str, ServerStatus] = {}

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger._log(level, "manager", message, context)

    async def initialize(
        self, servers: list[MCPServerDefinition] | None = None
    ) -> dict[str, ServerStatus]:
        """Start every configured server concurrently.

        Failures are logged and isolated. Servers already managed are
        not attempted again.

        Args:
            servers: Server definitions (defaults to the configured list)

        Returns:
            Dict of server name to status for every attempted server
        """
        definitions = self._config.mcp_servers if servers is None else servers
        if not definitions:
            self._log(LogLevel.INFO, "No MCP servers configured")
            return {}

        to_start: list[MCPServerDefinition] = []
        seen: set[str] = set()
        for definition in definitions:
            if not definition.enabled:
                self._log(LogLevel.INFO, f"Skipping disabled server '{definition.name}'")
                continue
            if definition.name in seen:
                self._log(
                    LogLevel.WARN,
                    f"Duplicate server name '{definition.name}', keeping the first definition",
                )
                continue
            seen.add(definition.name)
            self._rank.setdefault(definition.name, len(self._rank))
            if definition.name in self._clients:
                continue
            to_start.append(definition)

        if not to_start:
            return {}

        self._log(LogLevel.INFO, f"Connecting to {len(to_start)} MCP servers")
        statuses = await asyncio.gather(*(self._start_one(d) for d in to_start))
        if self.is_available():
            # Fetches every catalog and reports collisions once at startup
            await self._build_catalog()
        status_dict = {
            status.name: self._clients[status.name].get_status() if status.ready else status
            for status in statuses
        }

        ready = sum(1 for status in statuses if status.ready)
        self._log(LogLevel.INFO, f"Connected to {ready}/{len(statuses)} servers")
        if not self.is_available():
            self._log(LogLevel.ERROR, "No MCP servers available")
        return status_dict

    async def _start_one(self, definition: MCPServerDefinition) -> ServerStatus:
        """Build a transport and client for one server and run its handshake."""
        name = definition.name
        try:
            transport = self._transport_factory(definition, self._logger)
        except Exception as e:
            error = self._error_factory.from_exception(e, server_name=name)
            self._log(LogLevel.ERROR, f"Cannot create transport for '{name}': {error.message}")
            status = ServerStatus(
                name=name,
                state=ClientState.CLOSED,
                transport=definition.transport.value,
                last_error=error.detail or error.message,
            )
            self._failed[name] = status
            return status

        client = MCPClient(
            name,
            transport,
            logger=self._logger,
            call_timeout=definition.timeout_seconds,
            error_factory=self._error_factory,
        )
        self._clients[name] = client
        self._failed.pop(name, None)

        if not await client.initialize():
            self._clients.pop(name, None)
            self._failed[name] = client.get_status()
            return self._failed[name]
        return client.get_status()

    def is_available(self) -> bool:
        """True when at least one server is ready."""
        return any(client.is_ready for client in self._clients.values())

    def _ready_clients(self) -> list[MCPClient]:
        ready = [client for client in self._clients.values() if client.is_ready]
        return sorted(ready, key=lambda client: self._rank.get(client.name, len(self._rank)))

    async def _build_catalog(self) -> tuple[list[ToolSchema], dict[str, MCPClient]]:
        """Rebuild the combined catalog from every ready client's cache.

        Returns:
            Tools in configuration order and the owner of each tool name
        """
        clients = self._ready_clients()
        catalogs = await asyncio.gather(*(client.list_tools() for client in clients))
        return self._merge(clients, catalogs, report_collisions=True)

    def _routing_table(self) -> dict[str, MCPClient]:
        """Owner of each tool name from the catalogs already cached.

        Never touches the network, so a server whose catalog cannot be
        fetched does not delay calls to the others.
        """
        clients = self._ready_clients()
        _, owners = self._merge(
            clients, [client.cached_tools() for client in clients], report_collisions=False
        )
        return owners

    def _merge(
        self,
        clients: list[MCPClient],
        catalogs: list[list[ToolSchema]],
        report_collisions: bool,
    ) -> tuple[list[ToolSchema], dict[str, MCPClient]]:
        tools: list[ToolSchema] = []
        owners: dict[str, MCPClient] = {}
        for client, catalog in zip(clients, catalogs, strict=True):
            for tool in catalog:
                owner = owners.get(tool.name)
                if owner is not None:
                    if report_collisions and self._logger and owner is not client:
                        self._logger.server(client.name).collision(tool.name, owner.name)
                    continue
                owners[tool.name] = client
                tools.append(tool)
        return tools, owners

    async def get_all_tools(self) -> list[ToolSchema]:
        """Combined tool catalog across all ready servers.

        Returns:
            One descriptor per tool name, in configuration order
        """
        tools, _ = await self._build_catalog()
        return tools

    async def get_tool_owner(self, name: str) -> str | None:
        """Name of the server a call to ``name`` would be routed to."""
        owner = self._routing_table().get(name)
        return owner.name if owner else None

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolCallResult:
        """Route a tool call to the server that owns the name.

        Never raises; an unknown name yields an error result shaped like
        any other tool failure. Routing uses the cached catalogs only;
        tools of a server whose catalog was never fetched become callable
        after ``get_all_tools`` or ``refresh_tools`` succeeds for it.

        Args:
            name: Tool name
            arguments: Tool arguments
            timeout: Optional timeout in seconds

        Returns:
            ToolCallResult
        """
        client = self._routing_table().get(name)
        if client is None:
            error = self._error_factory.create("TOOL_NOT_FOUND", tool_name=name)
            self._log(LogLevel.WARN, error.message)
            return ToolCallResult.error(error.message)
        return await client.call_tool(name, arguments, timeout=timeout)

    async def refresh_tools(self) -> dict[str, list[ToolSchema]]:
        """Drop every cached catalog and fetch them again.

        Returns:
            Dict of server name to tool list
        """
        self._log(LogLevel.INFO, "Refreshing tools from all servers")
        clients = self._ready_clients()
        await asyncio.gather(*(client.clear_cache() for client in clients))
        catalogs = await asyncio.gather(*(client.list_tools() for client in clients))

        tools_dict = {
            client.name: catalog for client, catalog in zip(clients, catalogs, strict=True)
        }
        total_tools = sum(len(tools) for tools in tools_dict.values())
        self._log(LogLevel.INFO, f"Refreshed {total_tools} tools from {len(tools_dict)} servers")
        return tools_dict

    def get_client(self, name: str) -> MCPClient | None:
        """Get client by server name.

        Args:
            name: Server name

        Returns:
            MCPClient if managed, None otherwise
        """
        return self._clients.get(name)

    def list_clients(self) -> list[MCPClient]:
        return list(self._clients.values())

    def get_status(self) -> dict[str, ServerStatus]:
        """Status of every managed server, including ones that failed to start."""
        status = {name: client.get_status() for name, client in self._clients.items()}
        for name, failed in self._failed.items():
            status.setdefault(name, failed)
        return status

    async def close(self, timeout: float = 10.0) -> None:
        """Close every client.

        Individual failures are logged, never raised.

        Args:
            timeout: Maximum time to wait for all clients in seconds
        """
        if not self._clients:
            self._failed.clear()
            self._rank.clear()
            return

        self._log(LogLevel.INFO, "Closing all MCP servers")
        clients = list(self._clients.values())
        self._clients.clear()
        self._failed.clear()
        self._rank.clear()

        try:
            results = await asyncio.wait_for(
                asyncio.gather(*(client.close() for client in clients), return_exceptions=True),
                timeout=timeout,
            )
        except TimeoutError:
            self._log(LogLevel.WARN, f"Timeout ({timeout}s) waiting for all servers to close")
            return

        for client, result in zip(clients, results, strict=True):
            if isinstance(result, Exception):
                self._log(LogLevel.WARN, f"Error closing '{client.name}': {result}")
        self._log(LogLevel.INFO, "Closed all servers")

    async def __aenter__(self) -> "MCPClientManager":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
