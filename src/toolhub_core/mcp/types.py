"""MCP client types for toolhub."""

import json
from dataclasses import dataclass, field
from typing import Any

from toolhub_core.types import ClientState


@dataclass
class ToolSchema:
    """MCP tool schema.

    Represents a tool available from an MCP server. Names are unique
    within one server only.
    """

    name: str
    description: str | None
    input_schema: dict[str, Any]

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolSchema":
        """Parse a ``tools/list`` entry.

        Raises:
            ValueError: If the entry has no usable name
        """
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError(f"tool entry without a name: {raw!r}")
        input_schema = raw.get("inputSchema")
        if not isinstance(input_schema, dict):
            input_schema = {"type": "object", "properties": {}}
        description = raw.get("description")
        return cls(
            name=name,
            description=description if isinstance(description, str) else None,
            input_schema=input_schema,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "inputSchema": self.input_schema}
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass
class ContentItem:
    """One entry of a tool result's content list.

    ``type`` is "text", "image" or "resource"; other types are kept
    verbatim in ``raw``.
    """

    type: str
    text: str | None = None
    data: str | None = None  # base64 payload for images
    mime_type: str | None = None
    resource: dict[str, Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def text_item(cls, text: str) -> "ContentItem":
        return cls(type="text", text=text, raw={"type": "text", "text": text})

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ContentItem":
        """Parse a content entry.

        Raises:
            ValueError: If the entry is not an object with a string type
        """
        if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
            raise ValueError(f"malformed content item: {raw!r}")

        resource = raw.get("resource")
        if resource is None and "uri" in raw:
            # flattened form: {"type": "resource", "uri": ..., "blob": ...}
            resource = {k: raw[k] for k in ("uri", "text", "blob", "mimeType") if k in raw}

        return cls(
            type=raw["type"],
            text=raw.get("text") if raw["type"] == "text" else None,
            data=raw.get("data"),
            mime_type=raw.get("mimeType"),
            resource=resource if isinstance(resource, dict) else None,
            raw=dict(raw),
        )

    def to_dict(self) -> dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        data: dict[str, Any] = {"type": self.type}
        if self.text is not None:
            data["text"] = self.text
        if self.data is not None:
            data["data"] = self.data
        if self.mime_type is not None:
            data["mimeType"] = self.mime_type
        if self.resource is not None:
            data["resource"] = self.resource
        return data

    def render(self) -> str:
        """Plain-text rendering for feeding back to a model."""
        if self.type == "text":
            return self.text or ""
        if self.type == "resource" and self.resource:
            if isinstance(self.resource.get("text"), str):
                return self.resource["text"]
            return f"[resource: {self.resource.get('uri', 'unknown')}]"
        if self.type == "image":
            return f"[image: {self.mime_type or 'unknown type'}]"
        return json.dumps(self.to_dict())


@dataclass
class ToolCallResult:
    """Result of a tool invocation.

    Always produced, including for failures, which are represented as
    ``is_error=True`` with a single text item describing the problem.
    """

    content: list[ContentItem] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def error(cls, message: str) -> "ToolCallResult":
        """Build the canonical failure result."""
        return cls(content=[ContentItem.text_item(f"Error: {message}")], is_error=True)

    @classmethod
    def from_dict(cls, raw: Any) -> "ToolCallResult":
        """Parse a ``tools/call`` result.

        Raises:
            ValueError: If the result is not an object with a content list
        """
        if not isinstance(raw, dict):
            raise ValueError("tools/call result is not an object")
        content = raw.get("content")
        if not isinstance(content, list):
            raise ValueError("tools/call result has no content list")
        return cls(
            content=[ContentItem.from_dict(item) for item in content],
            is_error=bool(raw.get("isError", False)),
        )

    @property
    def text(self) -> str:
        """All items rendered as text, newline separated."""
        return "\n".join(item.render() for item in self.content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [item.to_dict() for item in self.content],
            "isError": self.is_error,
        }


@dataclass
class ServerStatus:
    """Status of an MCP server connection.

    Used for monitoring and diagnostics.
    """

    name: str
    state: ClientState
    transport: str
    tools: list[str] = field(default_factory=list)
    server_info: dict[str, Any] | None = None
    last_connected: str | None = None
    last_error: str | None = None

    @property
    def ready(self) -> bool:
        return self.state == ClientState.READY
