"""Test mocks for toolhub-core.

Provides in-memory stand-ins for testing:
- StubTransport: scripted transport answering per method
- StubTransportFactory: hands out StubTransports to the manager by server name
"""

from .stub_transport import StubTransport, StubTransportFactory

__all__ = ["StubTransport", "StubTransportFactory"]
