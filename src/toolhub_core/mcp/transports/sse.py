"""Legacy HTTP+SSE transport.

A long-lived GET stream delivers server messages. Its first ``endpoint``
event names the URL that client messages are POSTed to; responses come
back on the stream, correlated by id.
"""

import asyncio
from typing import Any
from urllib.parse import urljoin

import httpx

from toolhub_core.errors import ErrorFactory
from toolhub_core.logging.logger import ToolhubLogger
from toolhub_core.types import LogLevel

from ..protocol import (
    METHOD_NOT_FOUND,
    JSONRPCMessage,
    JSONRPCRequest,
    JSONRPCResponse,
    Method,
    PendingRequests,
)
from .base import MCPClientTransport
from .events import ServerSentEvent, iter_sse_events


class SSETransport(MCPClientTransport):
    """HTTP+SSE transport for servers predating streamable HTTP."""

    transport_type = "sse"

    ENDPOINT_TIMEOUT = 10.0

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
        super().__init__(name, timeout=timeout, logger=logger, error_factory=error_factory)
        self.url = url
        self.headers = dict(headers or {})
        self._httpx_transport = httpx_transport
        self._client: httpx.AsyncClient | None = None
        self._stream_task: asyncio.Task[None] | None = None
        self._endpoint_ready = asyncio.Event()
        self._pending = PendingRequests()
        self._background: set[asyncio.Task[None]] = set()
        self.endpoint: str | None = None

    @property
    def is_alive(self) -> bool:
        return (
            self._client is not None
            and self.endpoint is not None
            and self._stream_task is not None
            and not self._stream_task.done()
        )

    async def initialize(self) -> bool:
        if self.is_alive:
            return True

        self.endpoint = None
        self._endpoint_ready = asyncio.Event()
        # The stream stays open indefinitely, so reads never time out
        self._client = httpx.AsyncClient(
            headers=self.headers,
            timeout=httpx.Timeout(self.timeout, read=None),
            transport=self._httpx_transport,
            follow_redirects=True,
        )
        self._stream_task = asyncio.create_task(
            self._listen(), name=f"mcp-sse-stream-{self.name}"
        )

        try:
            await asyncio.wait_for(self._endpoint_ready.wait(), self.ENDPOINT_TIMEOUT)
        except TimeoutError:
            self._log(
                LogLevel.ERROR,
                f"No endpoint event within {self.ENDPOINT_TIMEOUT:g}s from {self.url}",
            )
            await self._shutdown()
            return False

        if self.endpoint is None:
            await self._shutdown()
            return False

        self._log(LogLevel.DEBUG, f"Message endpoint: {self.endpoint}")
        return True

    async def send(self, request: JSONRPCRequest, timeout: float | None = None) -> JSONRPCResponse:
        if request.is_notification:
            await self.send_notification(request)
            return JSONRPCResponse(id=None, result={})
        if not self.is_alive:
            return self._not_running(request.id)

        wait = timeout if timeout is not None else self.timeout
        future = self._pending.register(request.id)

        async def exchange() -> JSONRPCResponse:
            await self._post(request.to_dict())
            return await future

        try:
            return await asyncio.wait_for(exchange(), wait)
        except TimeoutError:
            return self._timeout_response(request, wait)
        except Exception as e:
            return self._failure(request.id, e)
        finally:
            self._pending.discard(request.id)

    async def send_notification(self, request: JSONRPCRequest) -> bool:
        if not self.is_alive:
            self._log(LogLevel.WARN, f"Dropping {request.method.value}: transport not running")
            return False
        try:
            await self._post(request.to_dict())
        except httpx.HTTPError as e:
            self._log(LogLevel.ERROR, f"Failed to send {request.method.value}: {e}")
            return False
        return True

    async def close(self) -> None:
        if self._client is None and self._stream_task is None:
            return
        await self._shutdown()
        self._log(LogLevel.DEBUG, "SSE transport closed")

    async def _post(self, payload: dict[str, Any]) -> None:
        assert self._client is not None and self.endpoint is not None
        response = await self._client.post(self.endpoint, json=payload)
        response.raise_for_status()

    async def _listen(self) -> None:
        assert self._client is not None
        try:
            async with self._client.stream(
                "GET", self.url, headers={"Accept": "text/event-stream"}
            ) as response:
                response.raise_for_status()
                async for event in iter_sse_events(response.aiter_lines()):
                    self._handle_event(event)
            self._log(LogLevel.WARN, "Event stream ended")
        except httpx.HTTPError as e:
            self._log(LogLevel.ERROR, f"Event stream failed: {e}")
        finally:
            # Unblocks initialize() when the stream dies before the endpoint event
            self._endpoint_ready.set()
            self._pending.fail_all(self._closed_response)

    def _handle_event(self, event: ServerSentEvent) -> None:
        if event.event == "endpoint" or (
            self.endpoint is None and event.event == "message" and event.data.startswith("/")
        ):
            self.endpoint = urljoin(self.url, event.data.strip())
            self._endpoint_ready.set()
            return
        if event.event != "message" or not event.data:
            self._log(LogLevel.DEBUG, f"Ignoring '{event.event}' event")
            return

        try:
            message = JSONRPCMessage.parse(event.data)
        except ValueError:
            self._log(LogLevel.WARN, f"Ignoring non-JSON event: {event.data[:200]}")
            return
        if not isinstance(message, dict):
            self._log(LogLevel.WARN, f"Ignoring non-object event: {event.data[:200]}")
            return

        if JSONRPCMessage.is_response(message):
            response = JSONRPCResponse.from_dict(message)
            if not self._pending.resolve(response):
                self._log(LogLevel.DEBUG, f"No pending request for response id {response.id!r}")
        elif JSONRPCMessage.is_request(message):
            task = asyncio.create_task(self._answer_server_request(message))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        else:
            self._log(LogLevel.DEBUG, f"Server notification: {message.get('method')}")

    async def _answer_server_request(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if method == Method.PING.value:
            reply = JSONRPCMessage.success_response(message["id"], {})
        else:
            reply = JSONRPCMessage.error_response(
                message["id"], METHOD_NOT_FOUND, f"Method not found: {method}"
            )
        try:
            await self._post(reply)
        except httpx.HTTPError as e:
            self._log(LogLevel.WARN, f"Could not answer server request {method}: {e}")

    async def _shutdown(self) -> None:
        task, self._stream_task = self._stream_task, None
        if task is not None and not task.done():
            task.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        for background in list(self._background):
            background.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._pending.fail_all(self._closed_response)

        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
        self.endpoint = None
