"""Stdio transport: newline-delimited JSON-RPC over a child process's pipes."""

import asyncio
import contextlib
import json
import os
from typing import Any

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


class StdioTransport(MCPClientTransport):
    """Runs an MCP server as a subprocess.

    Requests go to the child's stdin one JSON object per line. A single
    reader task owns stdout and hands each response to whichever sender
    is waiting on its id, so concurrent requests may complete in any
    order. Stderr is drained into the log.
    """

    transport_type = "stdio"
    default_startup_delay = 0.5

    STREAM_LIMIT = 16 * 1024 * 1024
    LIVENESS_CHECK_DELAY = 0.1
    EXIT_WAIT = 1.0
    TERMINATE_TIMEOUT = 5.0

    def __init__(
        self,
        name: str,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        timeout: float = 30.0,
        logger: ToolhubLogger | None = None,
        error_factory: ErrorFactory | None = None,
    ):
        super().__init__(name, timeout=timeout, logger=logger, error_factory=error_factory)
        self.command = command
        self.args = list(args or [])
        self.env = dict(env or {})
        self.cwd = cwd

        self._process: asyncio.subprocess.Process | None = None
        self._pending = PendingRequests()
        self._write_lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()
        self._output_closed = False
        self._closed = False

    @property
    def is_alive(self) -> bool:
        return (
            not self._closed
            and self._process is not None
            and self._process.returncode is None
            and not self._output_closed
        )

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def initialize(self) -> bool:
        if self.is_alive:
            return True
        if self._closed:
            self._log(LogLevel.WARN, "Transport was closed and cannot be restarted")
            return False

        if self._process is not None:
            # Still running but its output is gone
            await self._shutdown()

        # Extra variables are layered over the inherited environment
        env = {**os.environ, **self.env} if self.env else None
        self._output_closed = False
        self._log(LogLevel.DEBUG, f"Starting: {self.command} {' '.join(self.args)}".rstrip())
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=self.cwd,
                limit=self.STREAM_LIMIT,
            )
        except (OSError, ValueError) as e:
            self._log(LogLevel.ERROR, f"Failed to start '{self.command}': {e}")
            self._process = None
            return False

        process = self._process
        self._reader_task = asyncio.create_task(
            self._read_stdout(process), name=f"mcp-stdio-reader-{self.name}"
        )
        self._stderr_task = asyncio.create_task(
            self._read_stderr(process), name=f"mcp-stdio-stderr-{self.name}"
        )

        await asyncio.sleep(self.LIVENESS_CHECK_DELAY)
        if process.returncode is not None:
            self._log(
                LogLevel.ERROR,
                f"Process exited immediately with code {process.returncode}",
            )
            await self._shutdown()
            return False

        self._log(LogLevel.INFO, "Process started", {"pid": process.pid})
        return True

    async def send(self, request: JSONRPCRequest, timeout: float | None = None) -> JSONRPCResponse:
        if request.is_notification:
            await self.send_notification(request)
            return JSONRPCResponse(id=None, result={})
        if not self.is_alive:
            return self._not_running(request.id)

        wait = timeout if timeout is not None else self.timeout
        future = self._pending.register(request.id)
        try:
            await self._write(request.to_dict())
            return await asyncio.wait_for(future, wait)
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
            await self._write(request.to_dict())
        except (OSError, RuntimeError) as e:
            self._log(LogLevel.ERROR, f"Failed to send {request.method.value}: {e}")
            return False
        return True

    async def close(self) -> None:
        if self._closed and self._process is None:
            return
        self._closed = True
        await self._shutdown()

    async def _write(self, payload: dict[str, Any]) -> None:
        process = self._process
        if process is None or process.stdin is None:
            raise ConnectionError("stdin is not available")
        line = json.dumps(payload, separators=(",", ":")) + "\n"
        async with self._write_lock:
            if process.stdin.is_closing():
                raise BrokenPipeError("stdin is closed")
            process.stdin.write(line.encode("utf-8"))
            await process.stdin.drain()
            # A write into a pipe the child has closed only marks the pipe as closing
            if process.stdin.is_closing():
                raise BrokenPipeError("Server closed its stdin")

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                await self._handle_line(line)
        except ValueError as e:
            # Raised by readline when a line exceeds STREAM_LIMIT
            self._log(LogLevel.ERROR, f"Unreadable server output: {e}")

        # No response can arrive any more, even if the process lives on
        self._output_closed = True
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(process.wait(), self.EXIT_WAIT)
        if process.returncode is not None:
            detail = f"Server process exited (exit code {process.returncode})"
        else:
            detail = "Server closed its output (exit code unknown)"
        exit_code = process.returncode if process.returncode is not None else "unknown"
        failed = self._pending.fail_all(
            lambda request_id: JSONRPCResponse.from_error(
                request_id,
                self._error_factory.create(
                    "TRANSPORT_UNAVAILABLE", server_name=self.name, detail=detail
                ),
            )
        )
        if not self._closed:
            self._log(
                LogLevel.WARN,
                f"Server output closed (exit code {exit_code})",
                {"failed_requests": failed},
            )

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        assert process.stderr is not None
        try:
            while True:
                line = await process.stderr.readline()
                if not line:
                    break
                text = line.decode("utf-8", errors="replace").rstrip()
                if text:
                    self._log(LogLevel.INFO, f"[stderr] {text}")
        except ValueError as e:
            self._log(LogLevel.WARN, f"Stopped reading stderr: {e}")

    async def _handle_line(self, line: bytes) -> None:
        text = line.decode("utf-8", errors="replace").strip()
        if not text:
            return
        try:
            message = JSONRPCMessage.parse(text)
        except ValueError:
            self._log(LogLevel.WARN, f"Ignoring non-JSON output: {text[:200]}")
            return
        if not isinstance(message, dict):
            self._log(LogLevel.WARN, f"Ignoring non-object message: {text[:200]}")
            return

        if JSONRPCMessage.is_response(message):
            response = JSONRPCResponse.from_dict(message)
            if not self._pending.resolve(response):
                self._log(
                    LogLevel.DEBUG,
                    f"No pending request for response id {response.id!r}",
                )
        elif JSONRPCMessage.is_request(message):
            # Answered off the reader so a full stdin pipe cannot stall responses
            task = asyncio.create_task(self._answer_server_request(message))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        elif JSONRPCMessage.is_notification(message):
            self._log(LogLevel.DEBUG, f"Server notification: {message.get('method')}")
        else:
            self._log(LogLevel.WARN, f"Ignoring unrecognized message: {text[:200]}")

    async def _answer_server_request(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if method == Method.PING.value:
            reply = JSONRPCMessage.success_response(message["id"], {})
        else:
            reply = JSONRPCMessage.error_response(
                message["id"], METHOD_NOT_FOUND, f"Method not found: {method}"
            )
        try:
            await self._write(reply)
        except (OSError, RuntimeError) as e:
            self._log(LogLevel.WARN, f"Could not answer server request {method}: {e}")

    async def _shutdown(self) -> None:
        process, self._process = self._process, None
        self._pending.fail_all(self._closed_response)

        if process is not None:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), self.TERMINATE_TIMEOUT)
                except TimeoutError:
                    self._log(LogLevel.WARN, "Process did not exit, killing it")
                    with contextlib.suppress(ProcessLookupError):
                        process.kill()
                    await process.wait()
            self._log(LogLevel.DEBUG, f"Process stopped (exit code {process.returncode})")

        tasks = [t for t in (self._reader_task, self._stderr_task) if t is not None]
        tasks.extend(self._background)
        self._reader_task = self._stderr_task = None
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
