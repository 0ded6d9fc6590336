"""
Pytest configuration and shared fixtures for toolhub tests.
"""

import io
import sys
from pathlib import Path

import pytest

# Add project root (for tests.mocks) and src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from toolhub_core.config.models import MCPServerDefinition  # noqa: E402
from toolhub_core.logging import LogConfig, ToolhubLogger  # noqa: E402
from toolhub_core.types import LogFormat, LogLevel, MCPTransport  # noqa: E402

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def tests_dir() -> Path:
    """Return the tests directory."""
    return Path(__file__).parent


@pytest.fixture(scope="session")
def fixtures_dir(tests_dir: Path) -> Path:
    """Return the fixtures directory."""
    return tests_dir / "fixtures"


@pytest.fixture(scope="session")
def fake_server_path(fixtures_dir: Path) -> Path:
    """Return path to the scripted stdio MCP server."""
    return fixtures_dir / "fake_mcp_server.py"


# =============================================================================
# Server Definition Fixtures
# =============================================================================


@pytest.fixture
def fake_server_definition(fake_server_path: Path):
    """Build a stdio definition that runs the fake server with extra options."""

    def _definition(name: str = "fake", *options: str, timeout: int = 5000) -> MCPServerDefinition:
        return MCPServerDefinition(
            name=name,
            transport=MCPTransport.STDIO,
            command=sys.executable,
            args=[str(fake_server_path), *options],
            timeout=timeout,
        )

    return _definition


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def log_stream() -> io.StringIO:
    """Capture log output."""
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> ToolhubLogger:
    """Debug-level JSON logger writing to log_stream."""
    return ToolhubLogger(
        LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON, output=log_stream)
    )


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "stdio: Tests that spawn a real subprocess")
    config.addinivalue_line("markers", "slow: Slow tests")
