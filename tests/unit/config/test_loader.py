"""Unit tests for ConfigLoader."""

import json

import pytest

from toolhub_core.config import ConfigLoader, resolve_env_vars
from toolhub_core.config.models import DEFAULT_TIMEOUT_MS
from toolhub_core.errors import ToolhubError
from toolhub_core.types import LogFormat, LogLevel, MCPTransport


class TestResolveEnvVars:
    """Tests for ${VAR} expansion."""

    def test_set_variable(self, monkeypatch):
        """Test that a set variable is substituted."""
        monkeypatch.setenv("TOOLHUB_TOKEN", "secret")

        assert resolve_env_vars("Bearer ${TOOLHUB_TOKEN}") == "Bearer secret"

    def test_default_value(self, monkeypatch):
        """Test the ${VAR:-default} form."""
        monkeypatch.delenv("TOOLHUB_UNSET", raising=False)

        assert resolve_env_vars("${TOOLHUB_UNSET:-fallback}") == "fallback"

    def test_missing_required_variable(self, monkeypatch):
        """Test that a missing ${VAR} raises CONFIG_INVALID."""
        monkeypatch.delenv("TOOLHUB_UNSET", raising=False)

        with pytest.raises(ToolhubError) as exc_info:
            resolve_env_vars("${TOOLHUB_UNSET}")

        assert exc_info.value.code == "CONFIG_INVALID"
        assert "TOOLHUB_UNSET" in exc_info.value.detail

    def test_custom_error_message(self, monkeypatch):
        """Test the ${VAR:?message} form."""
        monkeypatch.delenv("TOOLHUB_UNSET", raising=False)

        with pytest.raises(ToolhubError) as exc_info:
            resolve_env_vars("${TOOLHUB_UNSET:?set the API key}")

        assert exc_info.value.detail == "set the API key"

    def test_plain_string_untouched(self):
        """Test that strings without references pass through."""
        assert resolve_env_vars("npx -y server") == "npx -y server"


class TestLoadFromDict:
    """Tests for building configuration from a document."""

    def test_server_list_layout(self):
        """Test the mcpServers list layout."""
        config = ConfigLoader().load_from_dict(
            {
                "mcpServers": [
                    {"name": "files", "type": "stdio", "command": "files-server", "args": ["/tmp"]},
                    {"name": "web", "type": "http", "url": "http://localhost:8080/mcp"},
                ]
            }
        )

        files, web = config.tools.mcp_servers
        assert files.transport == MCPTransport.STDIO
        assert files.command == "files-server"
        assert files.args == ["/tmp"]
        assert files.timeout == DEFAULT_TIMEOUT_MS
        assert web.transport == MCPTransport.HTTP
        assert web.url == "http://localhost:8080/mcp"

    def test_named_mapping_layout(self):
        """Test the tools.mcp_servers mapping layout, named by key."""
        config = ConfigLoader().load_from_dict(
            {
                "tools": {
                    "mcp_servers": {
                        "github": {"command": "github-server", "env": {"TOKEN": "x"}},
                        "legacy": {"transport": "sse", "url": "http://old/sse", "timeout": 5000},
                    }
                }
            }
        )

        github, legacy = config.tools.mcp_servers
        assert github.name == "github"
        assert github.env == {"TOKEN": "x"}
        assert legacy.transport == MCPTransport.SSE
        assert legacy.timeout_seconds == 5.0

    def test_order_preserved(self):
        """Test that server order follows the document."""
        servers = [{"name": name, "command": name} for name in ("c", "a", "b")]

        config = ConfigLoader().load_from_dict({"mcpServers": servers})

        assert [server.name for server in config.tools.mcp_servers] == ["c", "a", "b"]

    def test_transport_aliases(self):
        """Test that transport names are matched case-insensitively with aliases."""
        config = ConfigLoader().load_from_dict(
            {"mcpServers": [{"name": "a", "type": "Streamable-HTTP", "url": "http://a"}]}
        )

        assert config.tools.mcp_servers[0].transport == MCPTransport.HTTP

    def test_command_string_split(self):
        """Test that a command line without args is split like a shell would."""
        config = ConfigLoader().load_from_dict(
            {"mcpServers": [{"name": "fs", "command": "npx -y '@scope/server fs' /data"}]}
        )

        server = config.tools.mcp_servers[0]
        assert server.command == "npx"
        assert server.args == ["-y", "@scope/server fs", "/data"]

    def test_invalid_entries_dropped(self, logger, log_stream):
        """Test that bad entries are skipped and good ones kept."""
        config = ConfigLoader(logger=logger).load_from_dict(
            {
                "mcpServers": [
                    {"name": "no-command", "type": "stdio"},
                    {"name": "no-url", "type": "http"},
                    {"name": "bad-type", "type": "carrier-pigeon"},
                    {"name": "bad-timeout", "command": "x", "timeout": -1},
                    {"command": "nameless"},
                    "not a dict",
                    {"name": "ok", "command": "ok-server"},
                ]
            }
        )

        assert [server.name for server in config.tools.mcp_servers] == ["ok"]
        output = log_stream.getvalue()
        assert "missing required 'command' field" in output
        assert "missing required 'url' field" in output
        assert "invalid type" in output

    def test_duplicate_names_keep_first(self):
        """Test that a repeated name keeps the first definition."""
        config = ConfigLoader().load_from_dict(
            {
                "mcpServers": [
                    {"name": "dup", "command": "first"},
                    {"name": "dup", "command": "second"},
                ]
            }
        )

        [server] = config.tools.mcp_servers
        assert server.command == "first"

    def test_disabled_server_kept(self):
        """Test that disabled servers load with enabled=False."""
        config = ConfigLoader().load_from_dict(
            {"mcpServers": [{"name": "off", "command": "x", "enabled": False}]}
        )

        assert config.tools.mcp_servers[0].enabled is False

    def test_invalid_structure_raises(self):
        """Test that a malformed document is rejected."""
        with pytest.raises(ToolhubError) as exc_info:
            ConfigLoader().load_from_dict({"mcpServers": {"name": "not-a-list"}})

        assert exc_info.value.code == "CONFIG_INVALID"
        assert "mcpServers must be a list" in exc_info.value.detail

    def test_unknown_keys_warned(self, logger, log_stream):
        """Test that unknown top-level keys only produce a warning."""
        ConfigLoader(logger=logger).load_from_dict({"servers": []})

        assert "Unknown configuration key: servers" in log_stream.getvalue()

    def test_logging_section(self):
        """Test that the logging section is converted to typed values."""
        config = ConfigLoader().load_from_dict(
            {
                "logging": {
                    "level": "debug",
                    "format": "json",
                    "components": {"transport": False},
                    "options": {"truncate_at": 50},
                }
            }
        )

        assert config.logging.level == LogLevel.DEBUG
        assert config.logging.format == LogFormat.JSON
        assert config.logging.components.transport is False
        assert config.logging.components.client is True
        assert config.logging.options.truncate_at == 50

    def test_invalid_logging_level(self):
        """Test that an unknown log level is rejected."""
        with pytest.raises(ToolhubError):
            ConfigLoader().load_from_dict({"logging": {"level": "chatty"}})


class TestLoadFile:
    """Tests for loading from disk."""

    def test_yaml_file(self, tmp_path, monkeypatch):
        """Test loading YAML with environment references."""
        monkeypatch.setenv("TOOLHUB_TEST_URL", "http://remote/mcp")
        monkeypatch.delenv("TOOLHUB_TEST_TOKEN", raising=False)
        config_file = tmp_path / "toolhub.yaml"
        config_file.write_text(
            """
mcpServers:
  - name: remote
    type: http
    url: ${TOOLHUB_TEST_URL}
    headers:
      Authorization: Bearer ${TOOLHUB_TEST_TOKEN:-anonymous}
"""
        )
        loader = ConfigLoader()

        config = loader.load(config_file)

        [server] = config.tools.mcp_servers
        assert server.url == "http://remote/mcp"
        assert server.headers == {"Authorization": "Bearer anonymous"}
        assert loader.config_path == config_file
        assert loader.get() is config

    def test_json_file(self, tmp_path):
        """Test that JSON files load through the same path."""
        config_file = tmp_path / "mcp-config.json"
        config_file.write_text(
            json.dumps({"mcpServers": [{"name": "files", "command": "files-server"}]})
        )

        config = ConfigLoader().load(config_file)

        assert config.tools.mcp_servers[0].name == "files"

    def test_path_from_environment(self, tmp_path, monkeypatch):
        """Test that TOOLHUB_CONFIG_PATH names the file when no path is given."""
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("mcpServers:\n  - name: env-server\n    command: x\n")
        monkeypatch.setenv("TOOLHUB_CONFIG_PATH", str(config_file))

        config = ConfigLoader().load()

        assert config.tools.mcp_servers[0].name == "env-server"

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test that a missing file gives an empty configuration."""
        config = ConfigLoader().load(tmp_path / "absent.yaml")

        assert config.tools.mcp_servers == []

    def test_missing_file_without_defaults(self, tmp_path):
        """Test that a missing file raises when defaults are disabled."""
        with pytest.raises(ToolhubError) as exc_info:
            ConfigLoader().load(tmp_path / "absent.yaml", use_defaults=False)

        assert "not found" in exc_info.value.detail

    def test_invalid_yaml(self, tmp_path):
        """Test that unparseable YAML raises CONFIG_INVALID."""
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("mcpServers: [unclosed\n")

        with pytest.raises(ToolhubError) as exc_info:
            ConfigLoader().load(config_file)

        assert "Invalid YAML" in exc_info.value.detail

    def test_non_mapping_document(self, tmp_path):
        """Test that a top-level list is rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ToolhubError):
            ConfigLoader().load(config_file)

    def test_get_before_load(self):
        """Test that get() raises until a configuration is loaded."""
        with pytest.raises(ToolhubError):
            ConfigLoader().get()
