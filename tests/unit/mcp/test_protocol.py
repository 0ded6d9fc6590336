"""Unit tests for JSON-RPC wire messages."""

import asyncio
import json

import pytest

from toolhub_core.errors import create_error
from toolhub_core.mcp.protocol import (
    INVALID_RESPONSE,
    METHOD_NOT_FOUND,
    JSONRPCError,
    JSONRPCMessage,
    JSONRPCRequest,
    JSONRPCResponse,
    Method,
    PendingRequests,
)


class TestJSONRPCRequest:
    """Tests for JSONRPCRequest."""

    def test_request_wire_form(self):
        """Test that a request carries jsonrpc, id, method and params."""
        request = JSONRPCRequest(Method.TOOLS_CALL, {"name": "echo"}, id="abc")

        assert request.to_dict() == {
            "jsonrpc": "2.0",
            "id": "abc",
            "method": "tools/call",
            "params": {"name": "echo"},
        }

    def test_notification_has_no_id_key(self):
        """Test that notifications omit id entirely rather than sending null."""
        notification = JSONRPCRequest(Method.INITIALIZED)

        assert notification.is_notification
        assert notification.to_dict() == {
            "jsonrpc": "2.0",
            "method": "notifications/initialized",
        }

    def test_params_omitted_when_absent(self):
        """Test that tools/list goes out without a params key."""
        request = JSONRPCRequest(Method.TOOLS_LIST, id="1")

        assert "params" not in request.to_dict()

    def test_method_string_is_coerced(self):
        """Test that a known method name becomes a Method member."""
        request = JSONRPCRequest("tools/list", id="1")

        assert request.method is Method.TOOLS_LIST

    def test_unknown_method_is_rejected(self):
        """Test that methods outside the closed set fail at construction."""
        with pytest.raises(ValueError):
            JSONRPCRequest("resources/list", id="1")

    def test_to_json_is_single_line(self):
        """Test that serialized requests contain no newlines."""
        request = JSONRPCRequest(Method.TOOLS_CALL, {"text": "a\nb"}, id="1")

        line = request.to_json()

        assert "\n" not in line
        assert json.loads(line)["params"]["text"] == "a\nb"

    def test_request_is_immutable(self):
        """Test that requests cannot be changed after construction."""
        request = JSONRPCRequest(Method.PING, id="1")

        with pytest.raises(AttributeError):
            request.id = "2"


class TestJSONRPCResponse:
    """Tests for JSONRPCResponse parsing."""

    def test_success_response(self):
        """Test parsing a result response."""
        response = JSONRPCResponse.from_dict({"jsonrpc": "2.0", "id": "7", "result": {"ok": 1}})

        assert response.id == "7"
        assert response.result == {"ok": 1}
        assert not response.is_error

    def test_error_response(self):
        """Test parsing an error response."""
        response = JSONRPCResponse.from_dict(
            {
                "jsonrpc": "2.0",
                "id": "7",
                "error": {"code": METHOD_NOT_FOUND, "message": "Method not found"},
            }
        )

        assert response.is_error
        assert response.error == JSONRPCError(METHOD_NOT_FOUND, "Method not found")

    def test_null_result_is_still_a_result(self):
        """Test that an explicit null result counts as a result."""
        response = JSONRPCResponse.from_dict({"jsonrpc": "2.0", "id": "1", "result": None})

        assert not response.is_error

    def test_missing_result_and_error_is_violation(self):
        """Test that a response with neither field becomes a local error."""
        response = JSONRPCResponse.from_dict({"jsonrpc": "2.0", "id": "9"})

        assert response.is_error
        assert response.error.code == INVALID_RESPONSE
        assert response.id == "9"

    def test_non_object_is_violation(self):
        """Test that a JSON array is rejected without raising."""
        response = JSONRPCResponse.from_dict([1, 2, 3])

        assert response.is_error
        assert response.error.code == INVALID_RESPONSE
        assert response.id is None

    def test_sloppy_error_object(self):
        """Test that a string error and a non-integer code are tolerated."""
        from_string = JSONRPCResponse.from_dict({"id": "1", "error": "boom"})
        from_bad_code = JSONRPCResponse.from_dict(
            {"id": "1", "error": {"code": "x", "message": "bad"}}
        )

        assert from_string.error.message == "boom"
        assert from_bad_code.error.code == -32603
        assert from_bad_code.error.message == "bad"

    def test_from_error_uses_template_rpc_code(self):
        """Test conversion of a structured error into a synthetic response."""
        error = create_error("TRANSPORT_TIMEOUT", timeout_ms=250)

        response = JSONRPCResponse.from_error("42", error)

        assert response.id == "42"
        assert response.error.code == -32001
        assert response.error.message == "Request timed out after 250ms"
        assert response.error.data["code"] == "TRANSPORT_TIMEOUT"

    def test_to_dict_round_trip(self):
        """Test that an error response serializes back to the wire shape."""
        response = JSONRPCResponse.failure("1", METHOD_NOT_FOUND, "Method not found", {"x": 1})

        assert response.to_dict() == {
            "jsonrpc": "2.0",
            "id": "1",
            "error": {"code": METHOD_NOT_FOUND, "message": "Method not found", "data": {"x": 1}},
        }


class TestJSONRPCMessage:
    """Tests for message classification helpers."""

    def test_classification(self):
        """Test response, request and notification detection."""
        response = {"jsonrpc": "2.0", "id": 1, "result": {}}
        request = {"jsonrpc": "2.0", "id": 1, "method": "ping"}
        notification = {"jsonrpc": "2.0", "method": "notifications/progress"}

        assert JSONRPCMessage.is_response(response)
        assert JSONRPCMessage.is_request(request)
        assert not JSONRPCMessage.is_request(notification)
        assert JSONRPCMessage.is_notification(notification)
        assert not JSONRPCMessage.is_notification(request)

    def test_parse_bytes(self):
        """Test parsing bytes input."""
        assert JSONRPCMessage.parse(b'{"id": 1}') == {"id": 1}

    def test_parse_invalid_json(self):
        """Test that invalid JSON raises ValueError."""
        with pytest.raises(ValueError):
            JSONRPCMessage.parse("not json")


class TestPendingRequests:
    """Tests for the correlation table."""

    @pytest.mark.asyncio
    async def test_resolve_by_id_in_any_order(self):
        """Test that responses reach their own waiter regardless of order."""
        pending = PendingRequests()
        first = pending.register("a")
        second = pending.register("b")

        assert pending.resolve(JSONRPCResponse(id="b", result=2))
        assert pending.resolve(JSONRPCResponse(id="a", result=1))

        assert (await first).result == 1
        assert (await second).result == 2
        assert len(pending) == 0

    @pytest.mark.asyncio
    async def test_numeric_id_matches_string_key(self):
        """Test that a server echoing the id as a number still correlates."""
        pending = PendingRequests()
        future = pending.register("17")

        assert pending.resolve(JSONRPCResponse(id=17, result="ok"))
        assert (await future).result == "ok"

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_delivered(self):
        """Test that a stray response does not disturb other waiters."""
        pending = PendingRequests()
        future = pending.register("a")

        assert not pending.resolve(JSONRPCResponse(id="zzz", result=None))
        assert not pending.resolve(JSONRPCResponse(id=None, result=None))
        assert not future.done()
        assert "a" in pending

    @pytest.mark.asyncio
    async def test_discard_removes_entry(self):
        """Test that discard forgets a request."""
        pending = PendingRequests()
        pending.register("a")

        pending.discard("a")
        pending.discard("a")

        assert "a" not in pending

    @pytest.mark.asyncio
    async def test_fail_all(self):
        """Test that fail_all completes every waiter and empties the table."""
        pending = PendingRequests()
        futures = [pending.register(str(i)) for i in range(3)]

        failed = pending.fail_all(lambda rid: JSONRPCResponse.failure(rid, -32000, "closed"))
        responses = await asyncio.gather(*futures)

        assert failed == 3
        assert len(pending) == 0
        assert [r.id for r in responses] == ["0", "1", "2"]
        assert all(r.error.message == "closed" for r in responses)
