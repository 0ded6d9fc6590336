"""Toolhub Logger - component-scoped colored logging for MCP client activity."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from toolhub_core.logging.colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from toolhub_core.types import LogFormat, LogLevel

COMPONENTS = ("transport", "client", "manager", "tool", "config")


@dataclass
class LogConfig:
    """Logger configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_params: bool = True
    show_results: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)
    output: TextIO = field(default=sys.stderr)

    def __post_init__(self) -> None:
        """Initialize default components if not provided."""
        if not self.components:
            self.components = {name: True for name in COMPONENTS}


class ToolhubLogger:
    """Main logger facade. Creates server-scoped loggers."""

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()
        self._level_order = {
            LogLevel.DEBUG: 0,
            LogLevel.INFO: 1,
            LogLevel.WARN: 2,
            LogLevel.ERROR: 3,
        }

    def server(self, server_name: str) -> "ServerLogger":
        """Get a logger scoped to one MCP server.

        Args:
            server_name: Configured server name

        Returns:
            ServerLogger instance
        """
        return ServerLogger(self, server_name)

    def configure(self, config: LogConfig) -> None:
        """Replace the active configuration."""
        self.config = config

    def _should_log(self, level: LogLevel) -> bool:
        return self._level_order.get(level, 0) >= self._level_order.get(self.config.level, 1)

    def _component_root(self, component: str) -> str:
        # "transport.github" is governed by the "transport" switch
        return component.split(".", 1)[0]

    def _log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Component name, optionally dotted with a server name
            message: Log message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        if not self.config.components.get(self._component_root(component), True):
            return

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self.config.output)

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        level_colors = {
            LogLevel.DEBUG: LIGHT_BLUE,
            LogLevel.INFO: CYAN,
            LogLevel.WARN: YELLOW,
            LogLevel.ERROR: RED,
        }

        color = level_colors.get(level, RESET)
        component_color = {
            "transport": ORANGE,
            "client": CYAN,
            "manager": MAGENTA,
            "tool": GREEN,
            "config": LIGHT_BLUE,
        }.get(self._component_root(component), RESET)

        # Format: [COMPONENT] message
        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_params:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self.config.output)


class ServerLogger:
    """Logger for server connection lifecycle events."""

    def __init__(self, parent: ToolhubLogger, server_name: str):
        """Initialize server logger.

        Args:
            parent: Parent ToolhubLogger instance
            server_name: Configured server name
        """
        self.parent = parent
        self.server_name = server_name

    def connecting(self, transport: str) -> None:
        """Log the start of a handshake."""
        context = {
            "server": self.server_name,
            "event": "server_connecting",
            "transport": transport,
        }
        message = f"Connecting to MCP server '{self.server_name}' ({transport})"
        self.parent._log(LogLevel.INFO, "client", message, context)

    def connected(self, duration_ms: int, protocol_version: str | None = None) -> None:
        """Log a completed handshake.

        Args:
            duration_ms: Handshake duration in milliseconds
            protocol_version: Protocol version the server answered with
        """
        context: dict[str, Any] = {
            "server": self.server_name,
            "event": "server_connected",
            "duration_ms": duration_ms,
        }
        if protocol_version:
            context["protocol_version"] = protocol_version

        duration_s = duration_ms / 1000
        message = f"MCP server '{self.server_name}' ready ({duration_s:.2f}s) ✓"
        self.parent._log(LogLevel.INFO, "client", message, context)

    def failed(self, reason: str) -> None:
        """Log a failed handshake or transport start."""
        context = {
            "server": self.server_name,
            "event": "server_failed",
            "error": reason,
        }
        message = f"MCP server '{self.server_name}' failed: {reason}"
        self.parent._log(LogLevel.ERROR, "client", message, context)

    def closed(self) -> None:
        """Log a client shutdown."""
        context = {"server": self.server_name, "event": "server_closed"}
        message = f"MCP server '{self.server_name}' closed"
        self.parent._log(LogLevel.INFO, "client", message, context)

    def collision(self, tool_name: str, owner: str) -> None:
        """Log a tool name hidden by another server's tool of the same name.

        Args:
            tool_name: Colliding tool name
            owner: Server that keeps the name
        """
        context = {
            "server": self.server_name,
            "event": "tool_collision",
            "tool_name": tool_name,
            "owner": owner,
        }
        message = (
            f"Tool '{tool_name}' from '{self.server_name}' is shadowed by server '{owner}'"
        )
        self.parent._log(LogLevel.WARN, "manager", message, context)

    def tool(self) -> "ToolLogger":
        """Get a logger for tool calls on this server.

        Returns:
            ToolLogger instance
        """
        return ToolLogger(self)


class ToolLogger:
    """Logger for tool call events."""

    def __init__(self, parent: ServerLogger):
        """Initialize tool logger.

        Args:
            parent: Parent ServerLogger instance
        """
        self.parent = parent

    def calling(self, tool_name: str, arguments: dict[str, Any] | None = None) -> None:
        """Log tool call start.

        Args:
            tool_name: Name of the tool being called
            arguments: Optional tool arguments
        """
        context: dict[str, Any] = {
            "server": self.parent.server_name,
            "event": "tool_calling",
            "tool_name": tool_name,
        }
        if arguments:
            context["arguments"] = arguments

        message = f"Calling tool '{tool_name}' on '{self.parent.server_name}'"
        self.parent.parent._log(LogLevel.INFO, "tool", message, context)

    def result(self, tool_name: str, result: Any, duration_ms: int) -> None:
        """Log tool call result.

        Args:
            tool_name: Name of the tool
            result: Tool execution result
            duration_ms: Execution duration in milliseconds
        """
        root = self.parent.parent
        context: dict[str, Any] = {
            "server": self.parent.server_name,
            "event": "tool_result",
            "tool_name": tool_name,
            "duration_ms": duration_ms,
        }

        duration_s = duration_ms / 1000
        message = f"Tool '{tool_name}' completed ({duration_s:.2f}s) ✓"

        if root.config.show_results:
            result_str = str(result)
            if len(result_str) > root.config.truncate_at:
                result_str = result_str[: root.config.truncate_at] + "..."
            context["result"] = result_str

        root._log(LogLevel.INFO, "tool", message, context)

    def error(self, tool_name: str, error: str, duration_ms: int) -> None:
        """Log tool call error.

        Args:
            tool_name: Name of the tool
            error: Error message
            duration_ms: Execution duration in milliseconds
        """
        context = {
            "server": self.parent.server_name,
            "event": "tool_error",
            "tool_name": tool_name,
            "duration_ms": duration_ms,
            "error": error,
        }

        duration_s = duration_ms / 1000
        message = f"Tool '{tool_name}' failed ({duration_s:.2f}s): {error}"
        self.parent.parent._log(LogLevel.ERROR, "tool", message, context)
