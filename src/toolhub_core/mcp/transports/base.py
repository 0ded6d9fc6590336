"""Transport abstraction: how bytes move between this process and one MCP server."""

from abc import ABC, abstractmethod
from typing import Any

from toolhub_core.errors import ErrorFactory, create_error, get_error_factory
from toolhub_core.logging.logger import ToolhubLogger
from toolhub_core.types import LogLevel

from ..protocol import JSONRPCRequest, JSONRPCResponse


class MCPClientTransport(ABC):
    """Abstract transport for one MCP server.

    Transports know nothing about MCP semantics. ``send`` and
    ``send_notification`` never raise for I/O problems. A failed send
    comes back as a synthetic error response, a failed notification as
    False, so the protocol client deals with a single error shape.
    """

    transport_type: str = "unknown"
    # Seconds a freshly started server is given before the first request.
    default_startup_delay: float = 0.0

    def __init__(
        self,
        name: str,
        timeout: float = 30.0,
        logger: ToolhubLogger | None = None,
        error_factory: ErrorFactory | None = None,
    ):
        """Initialize transport.

        Args:
            name: Server name, used in logs and error context
            timeout: Default seconds to wait for a response
            logger: Optional logger
            error_factory: Optional error factory (defaults to the shared one)
        """
        self.name = name
        self.timeout = timeout
        self._logger = logger
        self._error_factory = error_factory or get_error_factory()

    def _log(
        self, level: LogLevel, message: str, context: dict[str, Any] | None = None
    ) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger._log(level, f"transport.{self.name}", message, context)

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        """True while the transport can carry messages."""

    @abstractmethod
    async def initialize(self) -> bool:
        """Start the process or open the connection.

        Returns:
            False if the server could not be started or reached. Anything
            allocated by a failed attempt has already been released.
        """

    @abstractmethod
    async def send(self, request: JSONRPCRequest, timeout: float | None = None) -> JSONRPCResponse:
        """Send a request and wait for the response with the same id.

        Args:
            request: Request to send
            timeout: Seconds to wait, defaulting to the transport timeout

        Returns:
            The server's response, or a synthetic error response
        """

    @abstractmethod
    async def send_notification(self, request: JSONRPCRequest) -> bool:
        """Send a one-way message without waiting.

        Returns:
            False if the message could not be handed to the server
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the process or connection. Safe to call repeatedly."""

    async def __aenter__(self) -> "MCPClientTransport":
        if not await self.initialize():
            raise create_error(
                "TRANSPORT_UNAVAILABLE",
                server_name=self.name,
                detail=f"Could not start {self.transport_type} transport for '{self.name}'",
            )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _failure(self, request_id: str | None, error: Exception, **context: Any) -> JSONRPCResponse:
        """Turn an exception into a synthetic error response."""
        toolhub_error = self._error_factory.from_exception(error, server_name=self.name, **context)
        self._log(
            LogLevel.ERROR,
            f"Request {request_id} failed: {toolhub_error.message}",
            {"code": toolhub_error.code},
        )
        return JSONRPCResponse.from_error(request_id, toolhub_error)

    def _timeout_response(self, request: JSONRPCRequest, timeout: float) -> JSONRPCResponse:
        timeout_ms = int(timeout * 1000)
        self._log(LogLevel.ERROR, f"{request.method.value} request timed out after {timeout_ms}ms")
        error = self._error_factory.create(
            "TRANSPORT_TIMEOUT", server_name=self.name, timeout_ms=timeout_ms
        )
        return JSONRPCResponse.from_error(request.id, error)

    def _not_running(self, request_id: str | None) -> JSONRPCResponse:
        error = self._error_factory.create(
            "TRANSPORT_UNAVAILABLE",
            server_name=self.name,
            detail=f"{self.transport_type} transport for '{self.name}' is not running",
        )
        return JSONRPCResponse.from_error(request_id, error)

    def _closed_response(self, request_id: str | None) -> JSONRPCResponse:
        return JSONRPCResponse.from_error(
            request_id, self._error_factory.create("TRANSPORT_CLOSED", server_name=self.name)
        )
