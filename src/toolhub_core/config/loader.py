"""Toolhub configuration loader."""

import os
import re
import shlex
import typing
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from toolhub_core.errors import create_error
from toolhub_core.types import LogLevel, MCPTransport, ValidationIssue, ValidationResult

from .models import (
    DEFAULT_TIMEOUT_MS,
    LoggingConfig,
    MCPServerDefinition,
    ToolhubConfig,
    ToolsConfig,
)

CONFIG_PATH_ENV = "TOOLHUB_CONFIG_PATH"

_TRANSPORT_ALIASES = {
    "stdio": MCPTransport.STDIO,
    "http": MCPTransport.HTTP,
    "streamable-http": MCPTransport.HTTP,
    "streamable_http": MCPTransport.HTTP,
    "sse": MCPTransport.SSE,
}


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references

    Returns:
        String with env vars resolved

    Raises:
        ToolhubError: If required var not set
    """
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        if operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", detail=error_msg)
        raise create_error(
            "CONFIG_INVALID",
            detail=f"Required environment variable {var_name} not set",
        )

    return re.sub(pattern, replacer, value)


def _transport_key(entry: dict[str, Any]) -> str:
    return str(entry.get("type") or entry.get("transport") or "stdio").lower()


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    if isinstance(data, str):
        return resolve_env_vars(data)
    return data


class ConfigLoader:
    """Load and validate toolhub configuration.

    Accepts two layouts for the server list:

        mcpServers:                 tools:
          - name: files               mcp_servers:
            type: stdio                 files:
            command: npx                  type: stdio
            args: [...]                   command: npx ...

    Individual invalid servers are dropped with a log line rather than
    failing the whole load, so one bad entry never disables every tool.
    """

    def __init__(self, logger: Any = None):
        """Initialize config loader.

        Args:
            logger: Optional ToolhubLogger instance
        """
        self._config: ToolhubConfig | None = None
        self._config_path: Path | None = None
        self._logger = logger

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger:
            self._logger._log(level, "config", message)

    @property
    def config_path(self) -> Path | None:
        """Path of the last loaded file, if any."""
        return self._config_path

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> ToolhubConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. TOOLHUB_CONFIG_PATH environment variable
        2. ./toolhub.yaml
        3. ./mcp-config.json
        4. ~/.toolhub/config.yaml

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded ToolhubConfig instance

        Raises:
            ToolhubError: If file not found (when use_defaults=False) or invalid
        """
        if path is None:
            path = self._resolve_config_path()

        config_path = Path(path)

        if not config_path.exists():
            if use_defaults:
                self._log(
                    LogLevel.INFO,
                    f"No config file at {config_path}, starting without MCP servers",
                )
                return self.load_defaults()
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Configuration file not found: {config_path}",
            )

        # YAML is a superset of JSON, so mcp-config.json loads through the same path
        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Invalid YAML in config file: {e}",
            ) from e

        if not isinstance(data, dict):
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Top level of {config_path} must be a mapping",
            )

        data = _resolve_env_vars_recursive(data)

        return self.load_from_dict(data, config_path)

    def load_defaults(self) -> ToolhubConfig:
        """Load default configuration without a file."""
        return self.load_from_dict({})

    def load_from_dict(
        self, data: dict[str, Any], config_path: Path | None = None
    ) -> ToolhubConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration dictionary
            config_path: Optional path to config file (for tracking)

        Returns:
            Loaded ToolhubConfig instance

        Raises:
            ToolhubError: If the document structure is invalid
        """
        validation = self.validate(data)
        for warning in validation.warnings:
            self._log(LogLevel.WARN, f"{warning.path}: {warning.message}")
        if not validation.valid:
            error_messages = [f"- {issue.path}: {issue.message}" for issue in validation.errors]
            raise create_error(
                "CONFIG_INVALID",
                detail="Configuration validation failed:\n" + "\n".join(error_messages),
            )

        try:
            logging_config = self._convert_field(LoggingConfig, data.get("logging") or {})
        except (TypeError, ValueError) as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Failed to parse logging configuration: {e}",
            ) from e

        config = ToolhubConfig(
            tools=ToolsConfig(mcp_servers=self._parse_servers(data)),
            logging=logging_config,
        )

        self._config = config
        self._config_path = config_path

        enabled = sum(1 for server in config.tools.mcp_servers if server.enabled)
        self._log(
            LogLevel.INFO,
            f"Loaded {len(config.tools.mcp_servers)} MCP server definition(s), {enabled} enabled",
        )
        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate document structure without loading.

        Server-level problems are not reported here; they are handled
        per entry by validate_server so that valid entries survive.

        Args:
            data: Configuration dictionary

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        valid_keys = {"mcpServers", "tools", "logging"}
        for key in data:
            if key not in valid_keys:
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        if "mcpServers" in data and not isinstance(data["mcpServers"], list):
            errors.append(ValidationIssue(path="mcpServers", message="mcpServers must be a list"))

        tools = data.get("tools")
        if tools is not None:
            if not isinstance(tools, dict):
                errors.append(ValidationIssue(path="tools", message="tools must be a dictionary"))
            elif "mcp_servers" in tools and not isinstance(tools["mcp_servers"], dict):
                errors.append(
                    ValidationIssue(
                        path="tools.mcp_servers",
                        message="mcp_servers must map server names to definitions",
                    )
                )

        logging_section = data.get("logging")
        if logging_section is not None and not isinstance(logging_section, dict):
            errors.append(ValidationIssue(path="logging", message="logging must be a dictionary"))

        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)

    def validate_server(self, entry: Any, path: str) -> list[ValidationIssue]:
        """Check a single raw server entry.

        Args:
            entry: Raw server entry from the document
            path: Location used in issue messages

        Returns:
            List of issues; empty when the entry is usable
        """
        if not isinstance(entry, dict):
            return [ValidationIssue(path=path, message="server entry must be a dictionary")]

        issues: list[ValidationIssue] = []
        name = entry.get("name")
        if not name or not isinstance(name, str):
            issues.append(ValidationIssue(path=f"{path}.name", message="server name is required"))
            name = "<unnamed>"

        transport = _transport_key(entry)
        if transport not in _TRANSPORT_ALIASES:
            issues.append(
                ValidationIssue(
                    path=f"{path}.type",
                    message=f"server '{name}' has invalid type: '{transport}' "
                    "(must be 'stdio', 'http' or 'sse')",
                )
            )
        elif _TRANSPORT_ALIASES[transport] == MCPTransport.STDIO:
            if not entry.get("command"):
                issues.append(
                    ValidationIssue(
                        path=f"{path}.command",
                        message=f"stdio server '{name}' missing required 'command' field",
                    )
                )
        elif not entry.get("url"):
            issues.append(
                ValidationIssue(
                    path=f"{path}.url",
                    message=f"{transport} server '{name}' missing required 'url' field",
                )
            )

        timeout = entry.get("timeout")
        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0
        ):
            issues.append(
                ValidationIssue(
                    path=f"{path}.timeout",
                    message=f"server '{name}' timeout must be a positive integer (milliseconds)",
                )
            )

        if entry.get("args") is not None and not isinstance(entry["args"], list):
            issues.append(ValidationIssue(path=f"{path}.args", message="args must be a list"))
        for key in ("env", "headers"):
            if key in entry and entry[key] is not None and not isinstance(entry[key], dict):
                issues.append(
                    ValidationIssue(path=f"{path}.{key}", message=f"{key} must be a dictionary")
                )

        return issues

    def get(self) -> ToolhubConfig:
        """Get current configuration.

        Raises:
            ToolhubError: If configuration not loaded
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", detail="Configuration not loaded")
        return self._config

    def _parse_servers(self, data: dict[str, Any]) -> list[MCPServerDefinition]:
        raw: list[tuple[str, Any]] = []
        for index, entry in enumerate(data.get("mcpServers") or []):
            raw.append((f"mcpServers[{index}]", entry))
        for name, entry in ((data.get("tools") or {}).get("mcp_servers") or {}).items():
            if isinstance(entry, dict):
                entry = {"name": name, **entry}
            raw.append((f"tools.mcp_servers.{name}", entry))

        servers: list[MCPServerDefinition] = []
        seen: set[str] = set()
        for path, entry in raw:
            issues = self.validate_server(entry, path)
            if issues:
                for issue in issues:
                    self._log(LogLevel.ERROR, f"Invalid MCP server configuration: {issue.message}")
                continue

            server = self._to_definition(entry)
            if server.name in seen:
                self._log(
                    LogLevel.WARN,
                    f"Duplicate MCP server name '{server.name}' at {path}, keeping the first",
                )
                continue
            seen.add(server.name)
            servers.append(server)
            self._log(
                LogLevel.DEBUG,
                f"Loaded MCP server config: {server.name} ({server.transport.value})",
            )

        return servers

    def _to_definition(self, entry: dict[str, Any]) -> MCPServerDefinition:
        transport = _TRANSPORT_ALIASES[_transport_key(entry)]
        command = entry.get("command")
        args = [str(arg) for arg in entry.get("args") or []]

        # "command: npx -y @scope/server" without args is split like a shell would
        if command and not args and transport == MCPTransport.STDIO:
            parts = shlex.split(command)
            command, args = parts[0], parts[1:]

        return MCPServerDefinition(
            name=entry["name"],
            transport=transport,
            command=command,
            args=args,
            env={k: str(v) for k, v in (entry.get("env") or {}).items()},
            url=entry.get("url"),
            headers={k: str(v) for k, v in (entry.get("headers") or {}).items()},
            timeout=entry.get("timeout") or DEFAULT_TIMEOUT_MS,
            enabled=bool(entry.get("enabled", True)),
            description=entry.get("description"),
        )

    def _resolve_config_path(self) -> Path:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            return Path(env_path)

        for candidate in (Path("toolhub.yaml"), Path("mcp-config.json")):
            if candidate.exists():
                return candidate

        home_path = Path.home() / ".toolhub" / "config.yaml"
        if home_path.exists():
            return home_path

        # Not found - use local path as default
        return Path("toolhub.yaml")

    def _convert_field(self, field_type: Any, value: Any) -> Any:
        """Convert a raw value to the annotated field type.

        Handles nested dataclasses, enums, lists and dicts.
        """
        if value is None:
            return None

        origin = typing.get_origin(field_type)

        if origin is list:
            if not isinstance(value, list):
                return value
            args = typing.get_args(field_type)
            if args:
                return [self._convert_field(args[0], item) for item in value]
            return value

        if origin is dict:
            if not isinstance(value, dict):
                return value
            args = typing.get_args(field_type)
            if args and len(args) == 2:
                return {k: self._convert_field(args[1], v) for k, v in value.items()}
            return value

        if hasattr(field_type, "__dataclass_fields__"):
            if isinstance(value, dict):
                hints = typing.get_type_hints(field_type)
                kwargs = {}
                for f in fields(field_type):
                    if f.name in value:
                        kwargs[f.name] = self._convert_field(hints[f.name], value[f.name])
                return field_type(**kwargs)
            return value

        if hasattr(field_type, "__mro__") and any(
            base.__name__ == "Enum" for base in field_type.__mro__
        ):
            if isinstance(value, str):
                return field_type(value.upper() if field_type is LogLevel else value)
            return value

        return value


# Convenience singleton
_default_loader: ConfigLoader | None = None


def get_config_loader() -> ConfigLoader:
    """Get default config loader singleton."""
    global _default_loader  # noqa: PLW0603
    if _default_loader is None:
        _default_loader = ConfigLoader()
    return _default_loader


def load_config(path: str | Path | None = None) -> ToolhubConfig:
    """Convenience function to load config.

    Args:
        path: Optional path to config file

    Returns:
        Loaded ToolhubConfig instance
    """
    return get_config_loader().load(path)
