"""Toolhub error types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    TRANSPORT = "TRANSPORT"  # process/connection failures, timeouts
    PROTOCOL = "PROTOCOL"  # malformed or unexpected messages
    SERVER = "SERVER"  # well-formed error reported by the server
    CALLER = "CALLER"  # unknown tool, bad arguments
    SYSTEM = "SYSTEM"  # configuration and internal errors


@dataclass
class ToolhubError(Exception):
    """Structured error with context. Base exception for all toolhub errors."""

    # Identity
    code: str  # e.g., "TRANSPORT_TIMEOUT"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    retryable: bool = False
    rpc_code: int = -32603  # JSON-RPC error code used on the wire
    server_name: str | None = None
    tool_name: str | None = None

    cause: "ToolhubError | None" = None

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs and diagnostics.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
            "rpc_code": self.rpc_code,
            "server_name": self.server_name,
            "tool_name": self.tool_name,
            "timestamp": self.timestamp.isoformat(),
            "cause": self.cause.to_dict() if self.cause else None,
        }

    def to_rpc_error(self) -> dict[str, Any]:
        """Render as a JSON-RPC error object.

        Returns:
            Dict with code, message and data keys
        """
        data: dict[str, Any] = {"code": self.code}
        if self.detail:
            data["detail"] = self.detail
        return {"code": self.rpc_code, "message": self.message, "data": data}

    def with_context(
        self,
        server_name: str | None = None,
        tool_name: str | None = None,
    ) -> "ToolhubError":
        """Return copy with additional context.

        Args:
            server_name: Optional server name
            tool_name: Optional tool name

        Returns:
            New ToolhubError instance with updated context
        """
        return ToolhubError(
            code=self.code,
            category=self.category,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
            rpc_code=self.rpc_code,
            server_name=server_name or self.server_name,
            tool_name=tool_name or self.tool_name,
            cause=self.cause,
            timestamp=self.timestamp,
        )


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    category: ErrorCategory
    message_template: str  # "Request timed out after {timeout_ms}ms"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False
    rpc_code: int = -32603


@dataclass
class MatchResult:
    """Result of matching an exception."""

    code: str
    context: dict[str, Any]
    retryable: bool | None = None  # None = use template default


class ErrorMatcher(ABC):
    """Base class for exception matchers."""

    @abstractmethod
    def matches(self, error: Exception) -> bool:
        """Check if this matcher handles the error."""

    @abstractmethod
    def extract(self, error: Exception) -> MatchResult:
        """Extract error code and template context from the exception."""
