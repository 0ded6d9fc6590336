"""Error registry for creating errors from templates."""

from typing import Any

from .errors import ErrorCategory, ErrorTemplate, ToolhubError


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def register(self, template: ErrorTemplate) -> None:
        """Add or replace a template."""
        self._templates[template.code] = template

    def list_codes(self) -> list[str]:
        """List all registered error codes."""
        return list(self._templates.keys())

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: ToolhubError | None = None,
    ) -> ToolhubError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            ToolhubError instance

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context)
        detail = context.get("detail") or self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        if message is None:
            message = f"Error {code}"

        return ToolhubError(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            rpc_code=context.get("rpc_code", template.rpc_code),
            server_name=context.get("server_name"),
            tool_name=context.get("tool_name"),
            cause=cause,
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except KeyError:
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # TRANSPORT errors. -32000..-32099 is the JSON-RPC server-defined range.
        self._templates["TRANSPORT_UNAVAILABLE"] = ErrorTemplate(
            code="TRANSPORT_UNAVAILABLE",
            category=ErrorCategory.TRANSPORT,
            message_template="Transport error: {detail}",
            suggestion_template="Check that the MCP server process or endpoint is running",
            default_retryable=True,
            rpc_code=-32000,
        )

        self._templates["TRANSPORT_TIMEOUT"] = ErrorTemplate(
            code="TRANSPORT_TIMEOUT",
            category=ErrorCategory.TRANSPORT,
            message_template="Request timed out after {timeout_ms}ms",
            detail_template="The MCP server did not answer within the configured timeout",
            suggestion_template="Increase the server timeout or check whether the server is stuck",
            default_retryable=True,
            rpc_code=-32001,
        )

        self._templates["TRANSPORT_CLOSED"] = ErrorTemplate(
            code="TRANSPORT_CLOSED",
            category=ErrorCategory.TRANSPORT,
            message_template="Transport closed",
            detail_template="The connection to the MCP server was closed before a response arrived",
            suggestion_template="Reconnect the server",
            default_retryable=True,
            rpc_code=-32000,
        )

        # PROTOCOL errors
        self._templates["PROTOCOL_VIOLATION"] = ErrorTemplate(
            code="PROTOCOL_VIOLATION",
            category=ErrorCategory.PROTOCOL,
            message_template="Protocol violation: {detail}",
            suggestion_template="Check that the server speaks MCP over JSON-RPC 2.0",
            default_retryable=False,
            rpc_code=-32002,
        )

        # SERVER errors
        self._templates["SERVER_ERROR"] = ErrorTemplate(
            code="SERVER_ERROR",
            category=ErrorCategory.SERVER,
            message_template="{message}",
            detail_template="The MCP server reported an error",
            default_retryable=False,
        )

        # CALLER errors
        self._templates["TOOL_NOT_FOUND"] = ErrorTemplate(
            code="TOOL_NOT_FOUND",
            category=ErrorCategory.CALLER,
            message_template="Tool '{tool_name}' not found",
            detail_template="No ready MCP server offers a tool with this name",
            suggestion_template="List the available tools and check the name",
            default_retryable=False,
            rpc_code=-32602,
        )

        self._templates["CLIENT_NOT_READY"] = ErrorTemplate(
            code="CLIENT_NOT_READY",
            category=ErrorCategory.CALLER,
            message_template="MCP server '{server_name}' is not ready",
            detail_template="The handshake has not completed or the client was closed",
            suggestion_template="Initialize the client before using it",
            default_retryable=False,
            rpc_code=-32000,
        )

        # SYSTEM errors
        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.SYSTEM,
            message_template="Invalid configuration",
            detail_template="The MCP server configuration is invalid",
            suggestion_template="Check the configuration file and fix errors",
            default_retryable=False,
        )

        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.SYSTEM,
            message_template="Internal error: {detail}",
            detail_template="An unexpected error occurred in the MCP client",
            suggestion_template="Check the logs and report this issue",
            default_retryable=False,
        )
