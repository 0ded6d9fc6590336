"""JSON-RPC protocol messages for MCP communication."""

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from toolhub_core.errors import ToolhubError

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Local codes in the server-defined range, used for synthetic responses
TRANSPORT_ERROR = -32000
REQUEST_TIMEOUT = -32001
INVALID_RESPONSE = -32002


class Method(str, Enum):
    """MCP methods this client sends or answers.

    Anything else is rejected when a request is built, so an
    unsupported method fails at the call site instead of on the wire.
    """

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    PING = "ping"


@dataclass(frozen=True)
class JSONRPCRequest:
    """Outgoing request, or notification when ``id`` is None."""

    method: Method
    params: dict[str, Any] | None = None
    id: str | None = None

    def __post_init__(self) -> None:
        """Coerce the method name into the closed Method set.

        Raises:
            ValueError: If the method is not one this client supports
        """
        object.__setattr__(self, "method", Method(self.method))

    @property
    def is_notification(self) -> bool:
        """True when no response is expected."""
        return self.id is None

    def to_dict(self) -> dict[str, Any]:
        """Build the wire form.

        Notifications carry no ``id`` key at all, and ``params`` is only
        present when set.
        """
        if self.is_notification:
            return JSONRPCMessage.notification(self.method.value, self.params)
        return JSONRPCMessage.request(self.method.value, self.params, id=self.id)

    def to_json(self) -> str:
        """Serialize to a single line of JSON."""
        return json.dumps(self.to_dict(), separators=(",", ":"))


@dataclass(frozen=True)
class JSONRPCError:
    """JSON-RPC error object."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, raw: Any) -> "JSONRPCError":
        """Parse an error object, tolerating sloppy servers.

        A non-integer code becomes INTERNAL_ERROR and a non-object error
        is kept as its string form.
        """
        if not isinstance(raw, dict):
            return cls(code=INTERNAL_ERROR, message=str(raw))
        code = raw.get("code")
        if isinstance(code, bool) or not isinstance(code, int):
            code = INTERNAL_ERROR
        message = str(raw.get("message", "Unknown error"))
        return cls(code=code, message=message, data=raw.get("data"))


@dataclass(frozen=True)
class JSONRPCResponse:
    """Response to a request.

    Exactly one of ``result`` and ``error`` is meaningful. Responses
    synthesized locally for transport failures use the same shape, so
    callers only ever inspect ``error``.
    """

    id: str | int | None
    result: Any = None
    error: JSONRPCError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return JSONRPCMessage.error_response(
                self.id, self.error.code, self.error.message, self.error.data
            )
        return JSONRPCMessage.success_response(self.id, self.result)

    @classmethod
    def from_dict(cls, message: Any) -> "JSONRPCResponse":
        """Build a response from a parsed message.

        Shape violations do not raise; they come back as an
        INVALID_RESPONSE error response carrying whatever id was present.

        Args:
            message: Parsed JSON value

        Returns:
            JSONRPCResponse
        """
        if not isinstance(message, dict):
            return cls.failure(None, INVALID_RESPONSE, "Response is not a JSON object")

        message_id = message.get("id")
        if "error" in message and message["error"] is not None:
            return cls(id=message_id, error=JSONRPCError.from_dict(message["error"]))
        if "result" in message:
            return cls(id=message_id, result=message["result"])
        return cls.failure(message_id, INVALID_RESPONSE, "Response has neither result nor error")

    @classmethod
    def failure(
        cls,
        id: str | int | None,
        code: int,
        message: str,
        data: Any = None,
    ) -> "JSONRPCResponse":
        """Build an error response."""
        return cls(id=id, error=JSONRPCError(code=code, message=message, data=data))

    @classmethod
    def from_error(cls, id: str | int | None, error: ToolhubError) -> "JSONRPCResponse":
        """Build a synthetic error response from a structured error."""
        return cls(id=id, error=JSONRPCError.from_dict(error.to_rpc_error()))


class JSONRPCMessage:
    """JSON-RPC 2.0 message builder and parser."""

    @staticmethod
    def request(
        method: str, params: dict[str, Any] | None = None, id: str | int = 1
    ) -> dict[str, Any]:
        """Build a JSON-RPC request.

        Args:
            method: Method name (e.g., "initialize", "tools/list", "tools/call")
            params: Optional parameters
            id: Request ID

        Returns:
            JSON-RPC request dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
            "id": id,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build a JSON-RPC notification (no response expected).

        Args:
            method: Method name
            params: Optional parameters

        Returns:
            JSON-RPC notification dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def success_response(id: str | int | None, result: Any) -> dict[str, Any]:
        """Build a JSON-RPC success response."""
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "result": result,
        }

    @staticmethod
    def error_response(
        id: str | int | None, code: int, message: str, data: Any = None
    ) -> dict[str, Any]:
        """Build a JSON-RPC error response.

        Args:
            id: Request ID
            code: Error code
            message: Error message
            data: Optional error data

        Returns:
            JSON-RPC error response dict
        """
        error: dict[str, Any] = {
            "code": code,
            "message": message,
        }
        if data is not None:
            error["data"] = data

        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "error": error,
        }

    @staticmethod
    def parse(message: str | bytes) -> Any:
        """Parse a JSON-RPC message.

        Args:
            message: JSON string or bytes

        Returns:
            Parsed JSON value (normally a dict)

        Raises:
            ValueError: If message is not valid JSON
        """
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        return json.loads(message)

    @staticmethod
    def is_response(message: dict[str, Any]) -> bool:
        """Check if message is a response (has 'result' or 'error')."""
        return "result" in message or "error" in message

    @staticmethod
    def is_request(message: dict[str, Any]) -> bool:
        """Check if message is a server-initiated request (method and id)."""
        return "method" in message and message.get("id") is not None

    @staticmethod
    def is_notification(message: dict[str, Any]) -> bool:
        """Check if message is a notification (method, no id)."""
        return "method" in message and message.get("id") is None

    @staticmethod
    def is_error(message: dict[str, Any]) -> bool:
        """Check if message is an error response."""
        return "error" in message


class PendingRequests:
    """Correlation table of in-flight requests keyed by id.

    Used by transports whose responses arrive on a stream separate from
    the write path, where arrival order says nothing about which request
    a response belongs to.
    """

    def __init__(self) -> None:
        self._futures: dict[str, asyncio.Future[JSONRPCResponse]] = {}

    def __len__(self) -> int:
        return len(self._futures)

    def __contains__(self, request_id: object) -> bool:
        return str(request_id) in self._futures

    def register(self, request_id: str | int) -> "asyncio.Future[JSONRPCResponse]":
        """Create and track the future a sender will wait on."""
        future: asyncio.Future[JSONRPCResponse] = asyncio.get_running_loop().create_future()
        self._futures[str(request_id)] = future
        return future

    def discard(self, request_id: str | int) -> None:
        self._futures.pop(str(request_id), None)

    def resolve(self, response: JSONRPCResponse) -> bool:
        """Deliver a response to the waiter registered under its id.

        Returns:
            False when nobody is waiting for this id
        """
        if response.id is None:
            return False
        future = self._futures.pop(str(response.id), None)
        if future is None or future.done():
            return False
        future.set_result(response)
        return True

    def fail_all(self, make_response: Callable[[str], JSONRPCResponse]) -> int:
        """Complete every waiter with ``make_response(request_id)``.

        Returns:
            Number of waiters completed
        """
        futures, self._futures = self._futures, {}
        completed = 0
        for request_id, future in futures.items():
            if not future.done():
                future.set_result(make_response(request_id))
                completed += 1
        return completed
