"""Turns raw exceptions from transports and servers into ToolhubErrors."""

from typing import Any

from .errors import ToolhubError
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry


class ErrorFactory:
    """Single place where failures get a code, a message and a JSON-RPC code.

    Transports and clients hand it whatever they caught; the matcher
    chain picks the code and the registry renders the message.
    """

    def __init__(
        self,
        registry: ErrorRegistry | None = None,
        matcher_chain: ErrorMatcherChain | None = None,
    ):
        self.registry = registry or ErrorRegistry()
        self.matcher_chain = matcher_chain or ErrorMatcherChain()

    def from_exception(
        self,
        error: Exception,
        server_name: str | None = None,
        tool_name: str | None = None,
        **context: Any,
    ) -> ToolhubError:
        """Classify ``error``.

        A ToolhubError keeps its code and only gains the server and tool
        names. Anything else is matched, and ``context`` wins over what
        the matcher extracted (e.g. a transport passing ``timeout_ms``).
        """
        if isinstance(error, ToolhubError):
            return error.with_context(server_name=server_name, tool_name=tool_name)

        match_result = self.matcher_chain.match(error)
        values = {**match_result.context, **context}
        if server_name:
            values["server_name"] = server_name
        if tool_name:
            values["tool_name"] = tool_name

        toolhub_error = self.registry.create(code=match_result.code, context=values)
        if match_result.retryable is not None:
            toolhub_error.retryable = match_result.retryable
        return toolhub_error

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> ToolhubError:
        """Build an error for a registered code.

        Args:
            code: Registry code, e.g. "TOOL_NOT_FOUND"
            context: Template variables
            **kwargs: More template variables, overriding ``context``

        Raises:
            ValueError: If the code is not registered
        """
        return self.registry.create(code=code, context={**(context or {}), **kwargs})


_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Process-wide factory used when a component is given none."""
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, **context: Any) -> ToolhubError:
    """Shorthand for ``get_error_factory().create(code, **context)``."""
    return get_error_factory().create(code, context)
