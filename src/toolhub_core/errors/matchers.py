"""Error matchers for converting raw exceptions to ToolhubErrors."""

import asyncio
import json
from typing import Any

import httpx

from .errors import ErrorMatcher, MatchResult


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches timeouts from asyncio and httpx."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="TRANSPORT_TIMEOUT",
            context={"timeout_ms": "unknown"},
            retryable=True,
        )


class HTTPStatusErrorMatcher(ErrorMatcher):
    """Matches non-success HTTP responses raised by httpx."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, httpx.HTTPStatusError)

    def extract(self, error: Exception) -> MatchResult:
        assert isinstance(error, httpx.HTTPStatusError)
        status = error.response.status_code
        return MatchResult(
            code="TRANSPORT_UNAVAILABLE",
            context={"detail": f"HTTP {status} from {error.request.url}"},
            # 5xx may clear up, 4xx will not
            retryable=status >= 500,
        )


class ConnectionErrorMatcher(ErrorMatcher):
    """Matches broken pipes, refused connections and closed streams."""

    def matches(self, error: Exception) -> bool:
        return isinstance(
            error,
            (
                ConnectionError,
                EOFError,
                asyncio.IncompleteReadError,
                httpx.TransportError,
                OSError,
            ),
        )

    def extract(self, error: Exception) -> MatchResult:
        detail = str(error) or type(error).__name__
        return MatchResult(code="TRANSPORT_UNAVAILABLE", context={"detail": detail})


class ProtocolErrorMatcher(ErrorMatcher):
    """Matches undecodable or unparseable payloads."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (json.JSONDecodeError, UnicodeDecodeError))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="PROTOCOL_VIOLATION",
            context={"detail": f"Malformed message: {error}"},
            retryable=False,
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception."""

    def matches(self, error: Exception) -> bool:
        return True

    def extract(self, error: Exception) -> MatchResult:
        context: dict[str, Any] = {
            "detail": str(error) or type(error).__name__,
            "error_type": type(error).__name__,
        }
        return MatchResult(code="INTERNAL_ERROR", context=context, retryable=False)


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: Exception) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        return MatchResult(code="INTERNAL_ERROR", context={"detail": str(error)})

    def _load_builtin_matchers(self) -> None:
        """Load built-in matchers in priority order."""
        # httpx timeouts are TransportErrors and HTTPStatusError is an HTTPError,
        # so the specific matchers must run before ConnectionErrorMatcher.
        self.matchers = [
            TimeoutErrorMatcher(),
            HTTPStatusErrorMatcher(),
            ProtocolErrorMatcher(),
            ConnectionErrorMatcher(),
            GenericErrorMatcher(),  # Fallback - must be last
        ]
