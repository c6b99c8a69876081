"""Error classification for failed tool calls.

Tool executors report failures as free text, so classification is a pure
substring match over the result content. Kinds split into:
- Permanent: TOOL_NOT_FOUND, INVALID_ARGUMENTS, PARSE_ERROR, VALIDATION_FAILED
- Transient: SERVER_NOT_RUNNING, EXECUTION_FAILED, TIMEOUT, RATE_LIMITED,
  NETWORK_ERROR
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from toolcall.models import ToolInvocationResult

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Closed set of tool call failure kinds."""

    TOOL_NOT_FOUND = "tool_not_found"
    SERVER_NOT_RUNNING = "server_not_running"
    INVALID_ARGUMENTS = "invalid_arguments"
    EXECUTION_FAILED = "execution_failed"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    VALIDATION_FAILED = "validation_failed"


PERMANENT_KINDS = frozenset(
    {
        ErrorKind.TOOL_NOT_FOUND,
        ErrorKind.INVALID_ARGUMENTS,
        ErrorKind.PARSE_ERROR,
        ErrorKind.VALIDATION_FAILED,
    }
)

# Seconds to wait before retrying, per transient kind
_SUGGESTED_DELAYS = {
    ErrorKind.TIMEOUT: 2.0,
    ErrorKind.NETWORK_ERROR: 1.0,
    ErrorKind.SERVER_NOT_RUNNING: 3.0,  # Give server time to start
    ErrorKind.EXECUTION_FAILED: 1.0,
}

DEFAULT_RATE_LIMIT_DELAY = 5.0


class ToolCallError(Exception):
    """A classified tool call failure.

    Attributes:
        kind: Failure kind
        tool_name: Tool (or server) the failure is attributed to
        detail: Free-text detail (execution output, parse/validation reason)
        arguments: Offending arguments for INVALID_ARGUMENTS
        retry_after: Explicit wait for RATE_LIMITED, if the server sent one
        underlying: Transport exception for NETWORK_ERROR, if any

    """

    def __init__(
        self,
        kind: ErrorKind,
        tool_name: str,
        detail: str = "",
        arguments: dict[str, Any] | None = None,
        retry_after: float | None = None,
        underlying: BaseException | None = None,
    ):
        self.kind = kind
        self.tool_name = tool_name
        self.detail = detail
        self.arguments = arguments or {}
        self.retry_after = retry_after
        self.underlying = underlying
        super().__init__(self.description)

    def __repr__(self) -> str:
        return f"ToolCallError({self.kind.name}, {self.tool_name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ToolCallError):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.tool_name == other.tool_name
            and self.retry_after == other.retry_after
        )

    __hash__ = Exception.__hash__

    @property
    def is_retryable(self) -> bool:
        """Whether this error is transient and can be retried."""
        return self.kind not in PERMANENT_KINDS

    @property
    def suggested_delay(self) -> float:
        """Suggested delay in seconds before a retry."""
        if self.kind is ErrorKind.RATE_LIMITED:
            if self.retry_after is not None:
                return self.retry_after
            return DEFAULT_RATE_LIMIT_DELAY
        return _SUGGESTED_DELAYS.get(self.kind, 0.0)

    @property
    def description(self) -> str:
        name = self.tool_name
        if self.kind is ErrorKind.TOOL_NOT_FOUND:
            return (
                f"Tool '{name}' not found. Check that the tool server is enabled "
                "and the tool name is correct."
            )
        if self.kind is ErrorKind.SERVER_NOT_RUNNING:
            return f"Tool server '{name}' is not running. Enable it in the server configuration."
        if self.kind is ErrorKind.INVALID_ARGUMENTS:
            return f"Invalid arguments for '{name}': {', '.join(self.arguments)}"
        if self.kind is ErrorKind.EXECUTION_FAILED:
            return f"Tool '{name}' execution failed: {self.detail}"
        if self.kind is ErrorKind.TIMEOUT:
            return f"Tool '{name}' timed out. The operation took too long to complete."
        if self.kind is ErrorKind.PARSE_ERROR:
            return f"Failed to parse tool call: {self.detail}"
        if self.kind is ErrorKind.RATE_LIMITED:
            return f"Tool '{name}' is rate limited. Please wait before retrying."
        if self.kind is ErrorKind.NETWORK_ERROR:
            reason = str(self.underlying) if self.underlying else "Connection failed"
            return f"Network error calling '{name}': {reason}"
        return f"Tool '{name}' result validation failed: {self.detail}"

    @property
    def recovery_suggestion(self) -> str:
        if self.kind is ErrorKind.TOOL_NOT_FOUND:
            return "Enable the required tool server, or check the tool name spelling."
        if self.kind is ErrorKind.SERVER_NOT_RUNNING:
            return "Enable the required server in the tool server configuration."
        if self.kind is ErrorKind.INVALID_ARGUMENTS:
            return "Check the tool documentation for required argument format."
        if self.kind is ErrorKind.EXECUTION_FAILED:
            return "Check the tool server logs or try restarting the server."
        if self.kind is ErrorKind.TIMEOUT:
            return "Try again or increase the timeout duration in settings."
        if self.kind is ErrorKind.PARSE_ERROR:
            return (
                "The model may have generated an invalid tool call format. "
                "Try rephrasing your request."
            )
        if self.kind is ErrorKind.RATE_LIMITED:
            if self.retry_after is not None:
                return f"Wait {int(self.retry_after)} seconds before retrying."
            return "Wait a moment before retrying."
        if self.kind is ErrorKind.NETWORK_ERROR:
            return "Check your network connection and try again."
        return "The tool returned unexpected data. Try the request again."


class ErrorClassifier:
    """Maps a failed tool result to a ToolCallError.

    Patterns are checked in priority order; the first match wins, so a
    message mentioning both "timeout" and "network" is a TIMEOUT.

    Example:
        classifier = ErrorClassifier()
        error = classifier.classify(result, "search::lookup")
        if error.is_retryable:
            ...

    """

    def classify(self, result: ToolInvocationResult, tool_name: str) -> ToolCallError:
        """Classify a failed result. Never raises.

        Args:
            result: Failed tool result
            tool_name: Tool the result came from

        Returns:
            ToolCallError; EXECUTION_FAILED when nothing specific matches

        """
        text = result.joined_text(" ").lower()

        if "not found" in text or "does not exist" in text:
            return ToolCallError(ErrorKind.TOOL_NOT_FOUND, tool_name)
        if "not running" in text or ("server" in text and "stopped" in text):
            return ToolCallError(ErrorKind.SERVER_NOT_RUNNING, tool_name)
        if "timeout" in text or "timed out" in text:
            return ToolCallError(ErrorKind.TIMEOUT, tool_name)
        if "rate limit" in text or "too many requests" in text:
            return ToolCallError(ErrorKind.RATE_LIMITED, tool_name, retry_after=None)
        if "network" in text or "connection" in text:
            return ToolCallError(ErrorKind.NETWORK_ERROR, tool_name)
        if "invalid" in text and "argument" in text:
            return ToolCallError(ErrorKind.INVALID_ARGUMENTS, tool_name)

        return ToolCallError(ErrorKind.EXECUTION_FAILED, tool_name, detail=text)


def validate_tool_name(tool_name: str) -> ToolCallError | None:
    """Check that a tool name has the ``server::tool`` form.

    Returns:
        PARSE_ERROR ToolCallError if malformed, otherwise None

    """
    parts = tool_name.split("::")
    if len(parts) != 2 or not all(parts):
        return ToolCallError(
            ErrorKind.PARSE_ERROR,
            tool_name,
            detail=f"Tool name must be in format 'server::tool', got '{tool_name}'",
        )
    return None
