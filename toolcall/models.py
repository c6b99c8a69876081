"""Data contracts shared by the executor boundary and the retry engine.

A request is built once per logical call and reused across its retries.
A result is produced once per attempt by the tool executor.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolContent:
    """One fragment of tool output."""

    text: str | None
    type: str = "text"


@dataclass(frozen=True)
class ToolInvocationRequest:
    """Immutable request for a named tool.

    Attributes:
        tool_name: Tool identifier, usually ``server::tool``
        arguments: String-keyed arguments passed to the tool
        context_id: Opaque conversation/session handle

    """

    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    context_id: Any = None

    def __post_init__(self):
        if not self.tool_name:
            raise ValueError("tool_name must be non-empty")


@dataclass(frozen=True)
class ToolInvocationResult:
    """Output of a single attempt.

    Attributes:
        content: Ordered text fragments (concatenation order matters)
        is_error: Whether the executor reported a failure
        was_self_healed: True when the result was synthesized from a failed
            attempt's partial data rather than returned by the tool

    """

    content: tuple[ToolContent, ...] = ()
    is_error: bool = False
    was_self_healed: bool = False

    def __post_init__(self):
        # Accept lists from callers, store as tuple
        object.__setattr__(self, "content", tuple(self.content))

    @classmethod
    def text_result(
        cls,
        text: str,
        is_error: bool = False,
        was_self_healed: bool = False,
    ) -> "ToolInvocationResult":
        return cls(
            content=(ToolContent(text=text),),
            is_error=is_error,
            was_self_healed=was_self_healed,
        )

    @property
    def texts(self) -> list[str]:
        """Text fragments, skipping non-text content."""
        return [c.text for c in self.content if c.text is not None]

    def joined_text(self, separator: str = "\n") -> str:
        return separator.join(self.texts)


@dataclass
class RetryableToolCall:
    """A tool call the user can retry by hand after it failed.

    Equality only considers identity and retry progress, so a UI list
    re-renders when a retry starts or finishes.
    """

    tool_name: str
    arguments: dict[str, Any]
    context_id: Any
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    retry_count: int = 0
    last_error: str | None = None
    is_retrying: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RetryableToolCall):
            return NotImplemented
        return (
            self.id == other.id
            and self.retry_count == other.retry_count
            and self.is_retrying == other.is_retrying
        )

    def __hash__(self) -> int:
        return hash(self.id)

    def to_request(self) -> ToolInvocationRequest:
        return ToolInvocationRequest(
            tool_name=self.tool_name,
            arguments=dict(self.arguments),
            context_id=self.context_id,
        )
