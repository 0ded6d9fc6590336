"""MCP Client - protocol state for a single server connection.

Drives the handshake, caches the server's tool catalog and invokes
tools. Every public operation reports failure as a value (False, an
empty list or an error result) so one misbehaving server cannot break
the caller.
"""

import asyncio
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from toolhub_core import __version__
from toolhub_core.errors import ErrorFactory, ToolhubError, get_error_factory
from toolhub_core.logging.logger import ServerLogger, ToolhubLogger, ToolLogger
from toolhub_core.types import ClientState, LogLevel, MCPTransport

from .protocol import PROTOCOL_VERSION, JSONRPCError, JSONRPCRequest, Method
from .transports.base import MCPClientTransport
from .types import ServerStatus, ToolCallResult, ToolSchema

CLIENT_INFO = {"name": "toolhub", "version": __version__}


class MCPClient:
    """Protocol client for one MCP server.

    State moves UNINITIALIZED -> HANDSHAKING -> READY -> CLOSED. A failed
    handshake goes straight to CLOSED, and a closed client stays closed.

    State changes and cache population are serialized by one lock.
    Tool calls only read state, so several may be in flight at once.
    """

    def __init__(
        self,
        name: str,
        transport: MCPClientTransport,
        logger: ToolhubLogger | None = None,
        startup_delay: float | None = None,
        handshake_timeout: float = 30.0,
        call_timeout: float | None = None,
        error_factory: ErrorFactory | None = None,
    ):
        """Initialize MCP client.

        Args:
            name: Server name
            transport: Transport to the server, owned by this client
            logger: Optional logger
            startup_delay: Seconds to wait between starting the transport and
                the first request (defaults to the transport's own grace period)
            handshake_timeout: Seconds to wait for the initialize response
            call_timeout: Default seconds to wait for other requests
                (defaults to the transport timeout)
            error_factory: Optional error factory
        """
        self.name = name
        self.transport = transport
        self._logger = logger
        self._server_logger: ServerLogger | None = logger.server(name) if logger else None
        self._tool_logger: ToolLogger | None = (
            self._server_logger.tool() if self._server_logger else None
        )
        self._error_factory = error_factory or get_error_factory()

        self.startup_delay = (
            transport.default_startup_delay if startup_delay is None else startup_delay
        )
        self.handshake_timeout = handshake_timeout
        self.call_timeout = call_timeout

        self._state = ClientState.UNINITIALIZED
        self._lock = asyncio.Lock()
        self._tools: list[ToolSchema] | None = None
        self._init_result: dict[str, Any] = {}
        self._last_connected: datetime | None = None
        self._last_error: str | None = None

        # Result parser per method; a method missing here cannot be sent
        self._parsers: dict[Method, Callable[[Any], Any]] = {
            Method.INITIALIZE: self._parse_initialize,
            Method.TOOLS_LIST: self._parse_tools,
            Method.TOOLS_CALL: ToolCallResult.from_dict,
            Method.PING: lambda result: result,
        }

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger._log(level, f"client.{self.name}", message, context)

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == ClientState.READY

    @property
    def server_info(self) -> dict[str, Any]:
        """``serverInfo`` from the initialize result (empty before the handshake)."""
        return self._init_result.get("serverInfo") or {}

    @property
    def server_capabilities(self) -> dict[str, Any]:
        return self._init_result.get("capabilities") or {}

    @property
    def protocol_version(self) -> str | None:
        return self._init_result.get("protocolVersion")

    async def initialize(self) -> bool:
        """Start the transport and run the handshake.

        Returns:
            True once the client is READY. Calling again while READY
            returns True without another handshake; a CLOSED client
            returns False.
        """
        async with self._lock:
            if self._state == ClientState.READY:
                return True
            if self._state == ClientState.CLOSED:
                self._log(LogLevel.WARN, "Client is closed and cannot be re-initialized")
                return False

            self._state = ClientState.HANDSHAKING
            if self._server_logger:
                self._server_logger.connecting(self.transport.transport_type)
            start = time.monotonic()

            if not await self._handshake():
                await self._release()
                if self._server_logger:
                    self._server_logger.failed(self._last_error or "unknown error")
                return False

            self._state = ClientState.READY
            self._last_connected = datetime.now(UTC)
            self._last_error = None
            if self._server_logger:
                self._server_logger.connected(
                    int((time.monotonic() - start) * 1000), self.protocol_version
                )
            return True

    async def _handshake(self) -> bool:
        """initialize request followed by the initialized notification."""
        try:
            started = await self.transport.initialize()
        except Exception as e:
            self._last_error = self._error_factory.from_exception(e, server_name=self.name).message
            return False
        if not started:
            self._last_error = f"{self.transport.transport_type} transport failed to start"
            return False

        if self.startup_delay > 0:
            await asyncio.sleep(self.startup_delay)

        params = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": CLIENT_INFO,
        }
        try:
            self._init_result = await self._request(
                Method.INITIALIZE, params, timeout=self.handshake_timeout
            )
        except Exception as e:
            self._last_error = self._error_factory.from_exception(e, server_name=self.name).message
            return False

        if self.protocol_version and self.protocol_version != PROTOCOL_VERSION:
            self._log(
                LogLevel.WARN,
                f"Server negotiated protocol {self.protocol_version}, "
                f"client speaks {PROTOCOL_VERSION}",
            )

        try:
            delivered = await self.transport.send_notification(JSONRPCRequest(Method.INITIALIZED))
            reason = "transport reported failure"
        except Exception as e:
            delivered, reason = False, str(e)
        if not delivered:
            # Some remote servers have no use for the notification
            if self.transport.transport_type == MCPTransport.STDIO.value:
                self._last_error = f"Failed to send initialized notification: {reason}"
                return False
            self._log(LogLevel.WARN, f"Ignoring failed initialized notification: {reason}")

        if not self.transport.is_alive:
            self._last_error = "Transport closed during handshake"
            return False
        return True

    async def list_tools(self) -> list[ToolSchema]:
        """Tool catalog, fetched on first use and cached afterwards.

        Returns:
            Tools in server order. Empty when the client is not ready or
            the server failed; the failure is logged, not raised.
        """
        async with self._lock:
            if self._tools is not None:
                return list(self._tools)
            if self._state != ClientState.READY:
                self._log(LogLevel.WARN, f"Cannot list tools in state {self._state.value}")
                return []

            try:
                tools = await self._request(Method.TOOLS_LIST, timeout=self.call_timeout)
            except Exception as e:
                error = self._error_factory.from_exception(e, server_name=self.name)
                self._last_error = error.message
                self._log(LogLevel.ERROR, f"Failed to list tools: {error.message}")
                return []

            self._tools = tools
            self._log(LogLevel.DEBUG, f"Cached {len(tools)} tools")
            return list(tools)

    def cached_tools(self) -> list[ToolSchema]:
        """Catalog as cached right now; empty if never fetched. No I/O."""
        return list(self._tools or [])

    def get_tool(self, name: str) -> ToolSchema | None:
        """Cached descriptor for ``name``; never performs I/O."""
        for tool in self._tools or []:
            if tool.name == name:
                return tool
        return None

    async def clear_cache(self) -> None:
        async with self._lock:
            self._tools = None

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolCallResult:
        """Invoke a tool.

        Never raises: transport failures, server errors and malformed
        responses all come back as a result with ``is_error`` set and a
        single text item describing the problem.

        Args:
            name: Tool name
            arguments: Tool arguments
            timeout: Seconds to wait, overriding the client default

        Returns:
            ToolCallResult
        """
        if self._state != ClientState.READY:
            error = self._error_factory.create(
                "CLIENT_NOT_READY", server_name=self.name, tool_name=name
            )
            return ToolCallResult.error(error.message)

        if self._tool_logger:
            self._tool_logger.calling(name, arguments)
        start = time.monotonic()

        params = {"name": name, "arguments": arguments or {}}
        try:
            result: ToolCallResult = await self._request(
                Method.TOOLS_CALL,
                params,
                timeout=timeout if timeout is not None else self.call_timeout,
            )
        except Exception as e:
            error = self._error_factory.from_exception(e, server_name=self.name, tool_name=name)
            if self._tool_logger:
                self._tool_logger.error(name, error.message, self._elapsed_ms(start))
            return ToolCallResult.error(error.message)

        if self._tool_logger:
            if result.is_error:
                self._tool_logger.error(name, result.text, self._elapsed_ms(start))
            else:
                self._tool_logger.result(name, result.text, self._elapsed_ms(start))
        return result

    async def ping(self) -> bool:
        """Liveness check. True when the server answers ``ping`` without error."""
        if self._state != ClientState.READY:
            return False
        try:
            await self._request(Method.PING, timeout=self.call_timeout)
        except Exception as e:
            self._log(LogLevel.WARN, f"Ping failed: {e}")
            return False
        return True

    async def close(self) -> None:
        """Close the client and its transport. Idempotent."""
        async with self._lock:
            if self._state == ClientState.CLOSED:
                return
            await self._release()
            if self._server_logger:
                self._server_logger.closed()

    async def _release(self) -> None:
        """Move to CLOSED and drop the transport and cached state."""
        self._state = ClientState.CLOSED
        self._tools = None
        try:
            await self.transport.close()
        except Exception as e:
            self._log(LogLevel.WARN, f"Error closing transport: {e}")

    def get_status(self) -> ServerStatus:
        """Snapshot of this client for diagnostics."""
        return ServerStatus(
            name=self.name,
            state=self._state,
            transport=self.transport.transport_type,
            tools=[tool.name for tool in self._tools or []],
            server_info=self.server_info or None,
            last_connected=self._last_connected.isoformat() if self._last_connected else None,
            last_error=self._last_error,
        )

    async def __aenter__(self) -> "MCPClient":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: Method,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and parse its result with the method's parser.

        Raises:
            ToolhubError: For error responses and malformed results
        """
        parse = self._parsers[method]
        request = JSONRPCRequest(method, params, id=uuid.uuid4().hex)
        response = await self.transport.send(request, timeout=timeout)
        if response.error is not None:
            raise self._response_error(response.error)
        try:
            return parse(response.result)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise self._error_factory.create(
                "PROTOCOL_VIOLATION",
                server_name=self.name,
                detail=f"malformed {method.value} result: {e}",
            ) from e

    def _response_error(self, error: JSONRPCError) -> ToolhubError:
        return self._error_factory.create(
            "SERVER_ERROR",
            server_name=self.name,
            message=error.message,
            rpc_code=error.code,
            detail=str(error.data) if error.data is not None else None,
        )

    @staticmethod
    def _parse_initialize(result: Any) -> dict[str, Any]:
        if not isinstance(result, dict):
            raise TypeError("initialize result is not an object")
        return result

    def _parse_tools(self, result: Any) -> list[ToolSchema]:
        if not isinstance(result, dict) or not isinstance(result.get("tools"), list):
            raise TypeError("tools/list result has no tools list")
        tools = []
        for raw in result["tools"]:
            try:
                tools.append(ToolSchema.from_dict(raw))
            except (ValueError, TypeError, AttributeError) as e:
                self._log(LogLevel.WARN, f"Skipping malformed tool entry: {e}")
        return tools

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
