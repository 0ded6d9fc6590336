"""Tests for the HTTP+SSE transport using httpx.MockTransport."""

import asyncio
import json

import httpx
import pytest

from toolhub_core.mcp.client import MCPClient
from toolhub_core.mcp.protocol import TRANSPORT_ERROR, JSONRPCRequest, Method
from toolhub_core.mcp.transports import SSETransport

URL = "http://mcp.test/sse"


class SSEServer:
    """Event-stream server: POSTed requests are answered on the GET stream."""

    def __init__(self, endpoint: str | None = "/messages?session=abc", reply: bool = True):
        self.endpoint = endpoint
        self.reply = reply
        self.queue: asyncio.Queue = asyncio.Queue()
        self.posts: list[dict] = []

    async def push(self, message: dict | None) -> None:
        await self.queue.put(message)

    async def _stream(self):
        if self.endpoint is not None:
            yield f"event: endpoint\ndata: {self.endpoint}\n\n".encode()
        while True:
            message = await self.queue.get()
            if message is None:
                return
            yield f"event: message\ndata: {json.dumps(message)}\n\n".encode()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, content=self._stream()
            )

        body = json.loads(request.content)
        self.posts.append(body)
        if "method" in body and "id" in body and self.reply:
            await self.push({"jsonrpc": "2.0", "id": body["id"], "result": self._result(body)})
        return httpx.Response(202)

    @staticmethod
    def _result(body: dict) -> dict:
        if body["method"] == "initialize":
            return {
                "protocolVersion": "2024-11-05",
                "capabilities": {},
                "serverInfo": {"name": "legacy", "version": "0.9"},
            }
        if body["method"] == "tools/list":
            return {"tools": [{"name": "lookup"}]}
        if body["method"] == "tools/call":
            return {"content": [{"type": "text", "text": "found"}]}
        return {}


def make_transport(server, **kwargs) -> SSETransport:
    return SSETransport("legacy", URL, httpx_transport=httpx.MockTransport(server), **kwargs)


class TestSSETransport:
    """Tests for SSETransport."""

    @pytest.mark.asyncio
    async def test_endpoint_resolved_against_stream_url(self):
        """Test that the endpoint event is joined with the stream URL."""
        transport = make_transport(SSEServer())

        assert await transport.initialize()
        assert transport.endpoint == "http://mcp.test/messages?session=abc"
        assert transport.is_alive
        await transport.close()
        assert not transport.is_alive

    @pytest.mark.asyncio
    async def test_response_arrives_on_stream(self):
        """Test that a POSTed request is answered through the event stream."""
        server = SSEServer()
        transport = make_transport(server)
        await transport.initialize()

        response = await transport.send(JSONRPCRequest(Method.PING, id="p-1"))

        assert response.id == "p-1"
        assert response.result == {}
        assert server.posts[0]["method"] == "ping"
        await transport.close()

    @pytest.mark.asyncio
    async def test_no_endpoint_event(self):
        """Test that initialize fails when the endpoint never arrives."""
        transport = make_transport(SSEServer(endpoint=None))
        transport.ENDPOINT_TIMEOUT = 0.2

        assert not await transport.initialize()
        assert not transport.is_alive

    @pytest.mark.asyncio
    async def test_stream_rejected(self, logger, log_stream):
        """Test that an HTTP error on the stream fails initialize."""
        transport = SSETransport(
            "legacy",
            URL,
            logger=logger,
            httpx_transport=httpx.MockTransport(lambda request: httpx.Response(404)),
        )

        assert not await transport.initialize()
        assert "Event stream failed" in log_stream.getvalue()

    @pytest.mark.asyncio
    async def test_server_ping_answered(self):
        """Test that a ping from the server is answered by POST."""
        server = SSEServer()
        transport = make_transport(server)
        await transport.initialize()

        await server.push({"jsonrpc": "2.0", "id": "srv-1", "method": "ping"})
        for _ in range(50):
            if server.posts:
                break
            await asyncio.sleep(0.01)

        assert server.posts == [{"jsonrpc": "2.0", "id": "srv-1", "result": {}}]
        await transport.close()

    @pytest.mark.asyncio
    async def test_stream_end_fails_pending(self):
        """Test that pending requests fail when the stream ends."""
        server = SSEServer(reply=False)
        transport = make_transport(server)
        await transport.initialize()

        pending = asyncio.create_task(transport.send(JSONRPCRequest(Method.PING, id="p-2")))
        await asyncio.sleep(0.05)
        await server.push(None)
        response = await pending

        assert response.error.code == TRANSPORT_ERROR
        assert response.error.message == "Transport closed"
        await transport.close()

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test that an unanswered request times out."""
        transport = make_transport(SSEServer(reply=False))
        await transport.initialize()

        response = await transport.send(JSONRPCRequest(Method.PING, id="p-3"), timeout=0.1)

        assert response.error.message == "Request timed out after 100ms"
        await transport.close()


class TestClientOverSSE:
    """End-to-end client session over the SSE transport."""

    @pytest.mark.asyncio
    async def test_session(self):
        """Test handshake, discovery and a call."""
        client = MCPClient("legacy", make_transport(SSEServer()))

        async with client:
            assert client.server_info["name"] == "legacy"
            tools = await client.list_tools()
            result = await client.call_tool("lookup", {"key": "k"})

        assert [tool.name for tool in tools] == ["lookup"]
        assert result.text == "found"
