"""Unit tests for MCP tool and result types."""

import json

import pytest

from toolhub_core.mcp.types import ContentItem, ServerStatus, ToolCallResult, ToolSchema
from toolhub_core.types import ClientState


class TestToolSchema:
    """Tests for ToolSchema parsing."""

    def test_from_dict(self):
        """Test parsing a complete tools/list entry."""
        tool = ToolSchema.from_dict(
            {
                "name": "search",
                "description": "Search the web",
                "inputSchema": {"type": "object", "properties": {"q": {"type": "string"}}},
            }
        )

        assert tool.name == "search"
        assert tool.description == "Search the web"
        assert tool.input_schema["properties"]["q"] == {"type": "string"}

    def test_missing_schema_gets_empty_object_schema(self):
        """Test that a tool without inputSchema still has a usable schema."""
        tool = ToolSchema.from_dict({"name": "noop"})

        assert tool.input_schema == {"type": "object", "properties": {}}
        assert tool.description is None

    @pytest.mark.parametrize("raw", [{}, {"name": ""}, {"name": 3}])
    def test_missing_name_is_rejected(self, raw):
        """Test that entries without a name raise ValueError."""
        with pytest.raises(ValueError):
            ToolSchema.from_dict(raw)

    def test_to_dict_uses_wire_keys(self):
        """Test serialization back to camelCase keys."""
        tool = ToolSchema(name="a", description=None, input_schema={"type": "object"})

        assert tool.to_dict() == {"name": "a", "inputSchema": {"type": "object"}}


class TestContentItem:
    """Tests for ContentItem parsing and rendering."""

    def test_text_item(self):
        """Test text content renders as its text."""
        item = ContentItem.from_dict({"type": "text", "text": "hello"})

        assert item.render() == "hello"

    def test_image_item(self):
        """Test image content keeps data and mime type."""
        item = ContentItem.from_dict({"type": "image", "data": "aGk=", "mimeType": "image/png"})

        assert item.data == "aGk="
        assert item.mime_type == "image/png"
        assert item.render() == "[image: image/png]"

    def test_nested_resource(self):
        """Test resource content with embedded text."""
        item = ContentItem.from_dict(
            {"type": "resource", "resource": {"uri": "file:///a.txt", "text": "contents"}}
        )

        assert item.resource["uri"] == "file:///a.txt"
        assert item.render() == "contents"

    def test_flattened_resource(self):
        """Test resource content given without the nested object."""
        item = ContentItem.from_dict({"type": "resource", "uri": "file:///b.bin", "blob": "AA=="})

        assert item.resource == {"uri": "file:///b.bin", "blob": "AA=="}
        assert item.render() == "[resource: file:///b.bin]"

    def test_unknown_type_is_preserved(self):
        """Test that unknown item types survive and render as JSON."""
        raw = {"type": "audio", "data": "xyz"}
        item = ContentItem.from_dict(raw)

        assert item.to_dict() == raw
        assert json.loads(item.render()) == raw

    def test_malformed_item(self):
        """Test that items without a type raise ValueError."""
        with pytest.raises(ValueError):
            ContentItem.from_dict({"text": "no type"})


class TestToolCallResult:
    """Tests for ToolCallResult."""

    def test_from_dict(self):
        """Test parsing a tools/call result with several items."""
        result = ToolCallResult.from_dict(
            {
                "content": [
                    {"type": "text", "text": "line one"},
                    {"type": "text", "text": "line two"},
                ],
                "isError": False,
            }
        )

        assert not result.is_error
        assert result.text == "line one\nline two"

    def test_is_error_mirrors_server(self):
        """Test that the server's isError flag is kept."""
        result = ToolCallResult.from_dict(
            {"content": [{"type": "text", "text": "nope"}], "isError": True}
        )

        assert result.is_error

    def test_missing_content_is_malformed(self):
        """Test that a result without a content list raises ValueError."""
        with pytest.raises(ValueError):
            ToolCallResult.from_dict({"isError": False})
        with pytest.raises(ValueError):
            ToolCallResult.from_dict("text")

    def test_error_shape(self):
        """Test the canonical failure result."""
        result = ToolCallResult.error("Method not found")

        assert result.is_error
        assert len(result.content) == 1
        assert result.content[0].type == "text"
        assert result.text == "Error: Method not found"

    def test_to_dict(self):
        """Test serialization to the wire shape."""
        result = ToolCallResult.error("boom")

        assert result.to_dict() == {
            "content": [{"type": "text", "text": "Error: boom"}],
            "isError": True,
        }


class TestServerStatus:
    """Tests for ServerStatus."""

    def test_ready(self):
        """Test ready reflects the client state."""
        assert ServerStatus("a", ClientState.READY, "stdio").ready
        assert not ServerStatus("a", ClientState.CLOSED, "stdio").ready
