"""Registry of tool servers and routing of ``server::tool`` calls.

Servers are started on demand. A server with a ``command`` gets a local
process launched on start; a server with only a ``url`` is assumed to be
managed elsewhere and is simply marked running.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from toolcall import config
from toolcall.executors.base import ServerConfig, ToolExecutor
from toolcall.executors.http import HttpToolExecutor
from toolcall.models import ToolInvocationResult

logger = logging.getLogger(__name__)

# Seconds to wait for a launched process to exit before killing it
STOP_TIMEOUT = 5


class ServerManager:
    """Owns tool servers and dispatches tool calls to them.

    Example:
        manager = ServerManager.from_yaml("servers.yaml")
        await manager.start_server(manager.find_server("search"))
        result = await manager.call_tool("search::lookup", {"q": "x"})

    """

    def __init__(self, servers: list[ServerConfig] | None = None):
        self.available_servers: list[ServerConfig] = list(servers or [])
        self._running: set[str] = set()
        self._processes: dict[str, asyncio.subprocess.Process] = {}
        self._executors: dict[str, ToolExecutor] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ServerManager":
        """Load servers from a YAML file with a top-level ``servers`` list."""
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        entries = data.get("servers") or []
        if not isinstance(entries, list):
            raise ValueError(f"'servers' in {path} must be a list")
        servers = [ServerConfig.from_dict(entry) for entry in entries]
        logger.info("Loaded %d tool server(s) from %s", len(servers), path)
        return cls(servers)

    @classmethod
    def from_config(cls) -> "ServerManager":
        if config.SERVERS_FILE:
            return cls.from_yaml(config.SERVERS_FILE)
        return cls()

    def add_server(self, server: ServerConfig) -> None:
        self.available_servers.append(server)

    def find_server(self, name: str) -> ServerConfig | None:
        """First server whose name or id matches, case-insensitively."""
        return next((s for s in self.available_servers if s.matches(name)), None)

    def is_running(self, server: ServerConfig) -> bool:
        return server.id in self._running

    def executor_for(self, server: ServerConfig) -> ToolExecutor:
        executor = self._executors.get(server.id)
        if executor is None:
            executor = HttpToolExecutor(server.url)
            self._executors[server.id] = executor
        return executor

    def set_executor(self, server: ServerConfig, executor: ToolExecutor) -> None:
        """Replace the executor used for a server (e.g. a stub in tests)."""
        self._executors[server.id] = executor

    async def start_server(self, server: ServerConfig) -> None:
        """Start a server. Already-running servers are left alone.

        Raises:
            OSError: If the server command cannot be launched

        """
        async with self._lock:
            if server.id in self._running:
                logger.info("Tool server %s is already running", server.name)
                return

            logger.info("Starting tool server: %s (ID: %s)", server.name, server.id)
            if server.command:
                env = {**os.environ, **server.env}
                self._processes[server.id] = await asyncio.create_subprocess_exec(
                    *server.command,
                    env=env,
                    cwd=server.working_directory,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            self._running.add(server.id)

    async def stop_server(self, server: ServerConfig) -> None:
        async with self._lock:
            self._running.discard(server.id)
            proc = self._processes.pop(server.id, None)

        if proc is None or proc.returncode is not None:
            return

        proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), timeout=STOP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Tool server %s did not stop, killing it", server.name)
            proc.kill()
            await proc.wait()
        logger.info("Stopped tool server %s", server.name)

    async def stop_all(self) -> None:
        for server in list(self.available_servers):
            await self.stop_server(server)

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context_id: Any = None,
    ) -> ToolInvocationResult:
        """Route ``server::tool`` to the owning server's executor."""
        server_name, sep, remote_name = tool_name.partition("::")
        server = self.find_server(server_name) if sep and remote_name else None

        if server is None:
            message = f"Tool '{tool_name}' not found"
            logger.error(message)
            return ToolInvocationResult.text_result(message, is_error=True)

        if not self.is_running(server):
            message = f"Server '{server.name}' is not running"
            logger.error(message)
            return ToolInvocationResult.text_result(message, is_error=True)

        logger.info("Calling tool %s on server %s", remote_name, server.name)
        return await self.executor_for(server).call_tool(remote_name, arguments, context_id)
