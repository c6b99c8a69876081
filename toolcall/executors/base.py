"""Tool executor boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from toolcall.models import ToolInvocationResult


@runtime_checkable
class ToolExecutor(Protocol):
    """Anything that can run a named tool.

    Implementations report failures as error results rather than raising,
    and must be safe to call again for transient failures.
    """

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context_id: Any = None,
    ) -> ToolInvocationResult: ...


@dataclass
class ServerConfig:
    """A tool server the manager can start and route calls to.

    Attributes:
        id: Stable identifier
        name: Display name, also the ``server`` part of ``server::tool``
        url: HTTP endpoint accepting JSON-RPC ``tools/call``
        command: Optional local process to launch on start
        env: Extra environment for the launched process
        working_directory: cwd for the launched process
        description: Free text

    """

    id: str
    name: str
    url: str
    command: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    working_directory: str | None = None
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        if "name" not in data or "url" not in data:
            raise ValueError(f"Server entry requires 'name' and 'url': {data!r}")
        command = data.get("command") or []
        if isinstance(command, str):
            command = command.split()
        return cls(
            id=str(data.get("id", data["name"])),
            name=str(data["name"]),
            url=str(data["url"]),
            command=[str(part) for part in command],
            env={str(k): str(v) for k, v in (data.get("env") or {}).items()},
            working_directory=data.get("working_directory"),
            description=str(data.get("description", "")),
        )

    def matches(self, name: str) -> bool:
        """Case-insensitive match on name or id."""
        lowered = name.lower()
        return self.name.lower() == lowered or self.id.lower() == lowered
