"""Toolhub configuration data models."""

from dataclasses import dataclass, field

from toolhub_core.types import LogFormat, LogLevel, MCPTransport

DEFAULT_TIMEOUT_MS = 30_000


@dataclass
class MCPServerDefinition:
    """Definition of an MCP server to connect to.

    Records reaching the manager are assumed valid; see
    ConfigLoader.validate_server for the checks applied when loading from file.
    """

    name: str
    transport: MCPTransport = MCPTransport.STDIO
    command: str | None = None  # For stdio: command to spawn
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    url: str | None = None  # For http/sse: server URL
    headers: dict[str, str] = field(default_factory=dict)
    timeout: int = DEFAULT_TIMEOUT_MS  # milliseconds
    enabled: bool = True
    description: str | None = None

    @property
    def timeout_seconds(self) -> float:
        """Request timeout in seconds."""
        return self.timeout / 1000


@dataclass
class ToolsConfig:
    """Tools configuration.

    Server order is significant: it decides which server owns a tool name
    that more than one server exposes.
    """

    mcp_servers: list[MCPServerDefinition] = field(default_factory=list)


@dataclass
class LoggingComponentsConfig:
    """Per-component logging switches."""

    transport: bool = True
    client: bool = True
    manager: bool = True
    tool: bool = True
    config: bool = True


@dataclass
class LoggingOptionsConfig:
    """Logging output options."""

    show_params: bool = True
    show_results: bool = True
    truncate_at: int = 200


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    components: LoggingComponentsConfig = field(default_factory=LoggingComponentsConfig)
    options: LoggingOptionsConfig = field(default_factory=LoggingOptionsConfig)


@dataclass
class ToolhubConfig:
    """Root configuration object."""

    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
