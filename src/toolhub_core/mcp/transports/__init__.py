"""MCP client transports."""

from .base import MCPClientTransport
from .events import ServerSentEvent, SSEDecoder, iter_sse_events
from .factory import create_transport
from .http import StreamableHTTPTransport
from .sse import SSETransport
from .stdio import StdioTransport

__all__ = [
    "MCPClientTransport",
    "StdioTransport",
    "StreamableHTTPTransport",
    "SSETransport",
    "create_transport",
    "ServerSentEvent",
    "SSEDecoder",
    "iter_sse_events",
]
