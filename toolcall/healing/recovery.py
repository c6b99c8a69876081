"""Best-effort corrective actions taken before a retry."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from toolcall import config
from toolcall.executors.manager import ServerManager
from toolcall.healing.classifier import ErrorKind, ToolCallError

logger = logging.getLogger(__name__)


class RecoveryHook:
    """Attempts automatic recovery for certain error kinds.

    - SERVER_NOT_RUNNING: find the matching server and start it
    - NETWORK_ERROR: pause briefly
    - anything else: no action

    Recovery failures are logged and reported as False, never raised.
    """

    def __init__(
        self,
        manager: ServerManager,
        network_pause: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.manager = manager
        self.network_pause = (
            config.NETWORK_RECOVERY_PAUSE if network_pause is None else network_pause
        )
        self._sleep = sleep

    async def attempt_recovery(self, error: ToolCallError) -> bool:
        """Run the recovery action for an error.

        Returns:
            True if a recovery action ran successfully

        """
        if error.kind is ErrorKind.SERVER_NOT_RUNNING:
            return await self._start_server(error.tool_name)

        if error.kind is ErrorKind.NETWORK_ERROR:
            await self._sleep(self.network_pause)
            return True

        return False

    async def _start_server(self, name: str) -> bool:
        # Errors carry the full tool name; the server is its prefix
        server = self.manager.find_server(name) or self.manager.find_server(
            name.partition("::")[0]
        )
        if server is None:
            logger.info("No tool server matches %s, nothing to restart", name)
            return False

        try:
            await self.manager.start_server(server)
        except Exception as e:
            logger.error("Failed to auto-start server %s: %s", server.name, e)
            return False

        logger.info("Auto-started tool server %s", server.name)
        return True
