"""Streamable HTTP transport: one POST per message.

The server answers each POST either with a JSON body or with an event
stream that carries the response (possibly after notifications). A
session id handed out by the server is echoed on later requests.
"""

import asyncio
from typing import Any

import httpx

from toolhub_core.errors import ErrorFactory
from toolhub_core.logging.logger import ToolhubLogger
from toolhub_core.types import LogLevel

from ..protocol import (
    INVALID_RESPONSE,
    JSONRPCMessage,
    JSONRPCRequest,
    JSONRPCResponse,
)
from .base import MCPClientTransport
from .events import iter_sse_events

SESSION_HEADER = "Mcp-Session-Id"
ACCEPT = "application/json, text/event-stream"


def _match_response(message: Any, request_id: str | None) -> dict[str, Any] | None:
    """Pick the response for ``request_id`` out of a message or batch."""
    candidates = message if isinstance(message, list) else [message]
    for candidate in candidates:
        if not isinstance(candidate, dict) or not JSONRPCMessage.is_response(candidate):
            continue
        if candidate.get("id") is None or str(candidate.get("id")) == str(request_id):
            return candidate
    return None


class StreamableHTTPTransport(MCPClientTransport):
    """HTTP transport for remote MCP servers."""

    transport_type = "http"

    def __init__(
        self,
        name: str,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        logger: ToolhubLogger | None = None,
        error_factory: ErrorFactory | None = None,
        httpx_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize transport.

        Args:
            name: Server name
            url: MCP endpoint URL
            headers: Extra headers sent with every request
            timeout: Default seconds to wait for a response
            logger: Optional logger
            error_factory: Optional error factory
            httpx_transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
        """
        super().__init__(name, timeout=timeout, logger=logger, error_factory=error_factory)
        self.url = url
        self.headers = dict(headers or {})
        self._httpx_transport = httpx_transport
        self._client: httpx.AsyncClient | None = None
        self.session_id: str | None = None

    @property
    def is_alive(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def initialize(self) -> bool:
        if self.is_alive:
            return True
        self._client = httpx.AsyncClient(
            headers=self.headers,
            timeout=httpx.Timeout(self.timeout),
            transport=self._httpx_transport,
            follow_redirects=True,
        )
        self._log(LogLevel.DEBUG, f"HTTP client ready for {self.url}")
        return True

    async def send(self, request: JSONRPCRequest, timeout: float | None = None) -> JSONRPCResponse:
        if request.is_notification:
            await self.send_notification(request)
            return JSONRPCResponse(id=None, result={})
        if not self.is_alive:
            return self._not_running(request.id)

        wait = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(self._exchange(request), wait)
        except TimeoutError:
            return self._timeout_response(request, wait)
        except Exception as e:
            return self._failure(request.id, e)

    async def send_notification(self, request: JSONRPCRequest) -> bool:
        if not self.is_alive:
            self._log(LogLevel.WARN, f"Dropping {request.method.value}: transport not running")
            return False
        assert self._client is not None
        try:
            response = await self._client.post(
                self.url, json=request.to_dict(), headers=self._request_headers()
            )
            self._remember_session(response)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._log(LogLevel.ERROR, f"Failed to send {request.method.value}: {e}")
            return False
        return True

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        if self.session_id and not client.is_closed:
            try:
                await client.delete(self.url, headers=self._request_headers())
            except httpx.HTTPError as e:
                self._log(LogLevel.DEBUG, f"Session termination failed: {e}")
        self.session_id = None
        await client.aclose()
        self._log(LogLevel.DEBUG, "HTTP client closed")

    def _request_headers(self) -> dict[str, str]:
        headers = {"Accept": ACCEPT}
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id
        return headers

    def _remember_session(self, response: httpx.Response) -> None:
        session_id = response.headers.get(SESSION_HEADER)
        if session_id and session_id != self.session_id:
            self.session_id = session_id
            self._log(LogLevel.DEBUG, f"Session established: {session_id}")

    async def _exchange(self, request: JSONRPCRequest) -> JSONRPCResponse:
        assert self._client is not None
        async with self._client.stream(
            "POST", self.url, json=request.to_dict(), headers=self._request_headers()
        ) as response:
            self._remember_session(response)
            response.raise_for_status()

            if "text/event-stream" in response.headers.get("content-type", ""):
                return await self._read_event_stream(response, request)

            body = await response.aread()
            matched = _match_response(JSONRPCMessage.parse(body), request.id)
            if matched is None:
                return JSONRPCResponse.failure(
                    request.id, INVALID_RESPONSE, "No response for request in HTTP body"
                )
            return JSONRPCResponse.from_dict(matched)

    async def _read_event_stream(
        self, response: httpx.Response, request: JSONRPCRequest
    ) -> JSONRPCResponse:
        async for event in iter_sse_events(response.aiter_lines()):
            if event.event != "message" or not event.data:
                continue
            try:
                message = JSONRPCMessage.parse(event.data)
            except ValueError:
                self._log(LogLevel.WARN, f"Ignoring non-JSON event: {event.data[:200]}")
                continue
            matched = _match_response(message, request.id)
            if matched is not None:
                return JSONRPCResponse.from_dict(matched)
            self._log(LogLevel.DEBUG, "Skipping non-response event while awaiting reply")
        return JSONRPCResponse.failure(
            request.id, INVALID_RESPONSE, "Event stream ended without a response"
        )
