"""Build a transport from a server definition."""

from toolhub_core.config.models import MCPServerDefinition
from toolhub_core.errors import ErrorFactory, create_error
from toolhub_core.logging.logger import ToolhubLogger
from toolhub_core.types import MCPTransport

from .base import MCPClientTransport
from .http import StreamableHTTPTransport
from .sse import SSETransport
from .stdio import StdioTransport


def create_transport(
    definition: MCPServerDefinition,
    logger: ToolhubLogger | None = None,
    error_factory: ErrorFactory | None = None,
) -> MCPClientTransport:
    """Create the transport a server definition asks for.

    No process is started and no connection is opened here.

    Raises:
        ToolhubError: CONFIG_INVALID if the definition lacks a command or URL
    """
    timeout = definition.timeout_seconds

    if definition.transport == MCPTransport.STDIO:
        if not definition.command:
            raise create_error(
                "CONFIG_INVALID",
                server_name=definition.name,
                detail=f"Server '{definition.name}' uses stdio but has no command",
            )
        return StdioTransport(
            definition.name,
            command=definition.command,
            args=definition.args,
            env=definition.env,
            timeout=timeout,
            logger=logger,
            error_factory=error_factory,
        )

    if not definition.url:
        raise create_error(
            "CONFIG_INVALID",
            server_name=definition.name,
            detail=f"Server '{definition.name}' uses {definition.transport.value} but has no url",
        )

    if definition.transport == MCPTransport.SSE:
        return SSETransport(
            definition.name,
            url=definition.url,
            headers=definition.headers,
            timeout=timeout,
            logger=logger,
            error_factory=error_factory,
        )
    return StreamableHTTPTransport(
        definition.name,
        url=definition.url,
        headers=definition.headers,
        timeout=timeout,
        logger=logger,
        error_factory=error_factory,
    )
