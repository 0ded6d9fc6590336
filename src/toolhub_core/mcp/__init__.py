"""Toolhub MCP - protocol client and server connection management."""

from .client import MCPClient
from .manager import MCPClientManager
from .protocol import (
    PROTOCOL_VERSION,
    JSONRPCError,
    JSONRPCMessage,
    JSONRPCRequest,
    JSONRPCResponse,
    Method,
    PendingRequests,
)
from .transports import (
    MCPClientTransport,
    SSETransport,
    StdioTransport,
    StreamableHTTPTransport,
    create_transport,
)
from .types import ContentItem, ServerStatus, ToolCallResult, ToolSchema

__all__ = [
    # Client
    "MCPClient",
    # Manager
    "MCPClientManager",
    # Transports
    "MCPClientTransport",
    "StdioTransport",
    "StreamableHTTPTransport",
    "SSETransport",
    "create_transport",
    # Types
    "ToolSchema",
    "ContentItem",
    "ToolCallResult",
    "ServerStatus",
    # Protocol
    "PROTOCOL_VERSION",
    "Method",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCError",
    "JSONRPCMessage",
    "PendingRequests",
]
