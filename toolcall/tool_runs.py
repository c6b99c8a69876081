"""SQLite history of tool calls.

One row per logical call (not per attempt), written by the invoker once
the call reaches a terminal outcome.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import aiosqlite

from toolcall.config import DB_PATH
from toolcall.models import ToolInvocationResult

logger = logging.getLogger(__name__)


@dataclass
class ToolRun:
    """A finished tool call.

    Attributes:
        context_id: Conversation/session handle the call belonged to
        tool_name: Full tool name
        server_id: Server part of ``server::tool``, if present
        input_json: Arguments as JSON
        output_text: Final result text
        is_error: Whether the final result is an error
        was_self_healed: Whether the final result came from self-healing
        attempts: Attempts made
        id: Row id
        created_at: Unix timestamp

    """

    context_id: str
    tool_name: str
    server_id: str | None = None
    input_json: str | None = None
    output_text: str | None = None
    is_error: bool = False
    was_self_healed: bool = False
    attempts: int = 1
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)

    @classmethod
    def from_execution(
        cls,
        context_id: Any,
        tool_name: str,
        arguments: dict[str, Any],
        result: ToolInvocationResult,
        attempts: int,
    ) -> "ToolRun":
        try:
            input_json = json.dumps(arguments, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            input_json = None
        server, sep, _ = tool_name.partition("::")
        return cls(
            context_id=str(context_id),
            tool_name=tool_name,
            server_id=server if sep else None,
            input_json=input_json,
            output_text=result.joined_text("\n"),
            is_error=result.is_error,
            was_self_healed=result.was_self_healed,
            attempts=attempts,
        )

    @classmethod
    def from_row(cls, row: aiosqlite.Row) -> "ToolRun":
        return cls(
            id=row["id"],
            context_id=row["context_id"],
            tool_name=row["tool_name"],
            server_id=row["server_id"],
            input_json=row["input_json"],
            output_text=row["output_text"],
            is_error=bool(row["is_error"]),
            was_self_healed=bool(row["was_self_healed"]),
            attempts=row["attempts"],
            created_at=row["created_at"],
        )


class ToolRunStore:
    """aiosqlite-backed tool run history.

    Usage:
        store = ToolRunStore()
        await store.init()
        await store.save_tool_run(run)
        runs = await store.load_tool_runs(context_id)

    """

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        if self._db is not None:
            return
        dir_path = os.path.dirname(self.db_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.executescript("""
            CREATE TABLE IF NOT EXISTS tool_runs (
                id TEXT PRIMARY KEY,
                context_id TEXT NOT NULL,
                tool_name TEXT NOT NULL,
                server_id TEXT,
                input_json TEXT,
                output_text TEXT,
                is_error INTEGER NOT NULL DEFAULT 0,
                was_self_healed INTEGER NOT NULL DEFAULT 0,
                attempts INTEGER NOT NULL DEFAULT 1,
                created_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_tool_runs_context ON tool_runs(context_id);
            CREATE INDEX IF NOT EXISTS idx_tool_runs_tool ON tool_runs(tool_name);
            CREATE INDEX IF NOT EXISTS idx_tool_runs_created ON tool_runs(created_at);
        """)
        await self._db.commit()
        logger.info("ToolRunStore initialized at %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("ToolRunStore is not initialized; call init() first")
        return self._db

    async def save_tool_run(self, run: ToolRun) -> None:
        async with self._lock:
            db = self._conn()
            await db.execute(
                """
                INSERT INTO tool_runs (
                    id, context_id, tool_name, server_id, input_json, output_text,
                    is_error, was_self_healed, attempts, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run.id,
                    run.context_id,
                    run.tool_name,
                    run.server_id,
                    run.input_json,
                    run.output_text,
                    int(run.is_error),
                    int(run.was_self_healed),
                    run.attempts,
                    run.created_at,
                ),
            )
            await db.commit()

    async def _fetch(self, sql: str, params: tuple = ()) -> list[ToolRun]:
        async with self._lock:
            async with self._conn().execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        return [ToolRun.from_row(row) for row in rows]

    async def load_tool_runs(self, context_id: Any, limit: int = 100) -> list[ToolRun]:
        """Most recent runs for a context, oldest first."""
        runs = await self._fetch(
            "SELECT * FROM tool_runs WHERE context_id = ? ORDER BY created_at DESC LIMIT ?",
            (str(context_id), limit),
        )
        return list(reversed(runs))

    async def get_tool_run(self, run_id: str) -> ToolRun | None:
        runs = await self._fetch("SELECT * FROM tool_runs WHERE id = ?", (run_id,))
        return runs[0] if runs else None

    async def get_tool_runs_by_name(self, tool_name: str, limit: int = 50) -> list[ToolRun]:
        return await self._fetch(
            "SELECT * FROM tool_runs WHERE tool_name = ? ORDER BY created_at DESC LIMIT ?",
            (tool_name, limit),
        )

    async def get_error_tool_runs(self, limit: int = 50) -> list[ToolRun]:
        return await self._fetch(
            "SELECT * FROM tool_runs WHERE is_error = 1 ORDER BY created_at DESC LIMIT ?",
            (limit,),
        )

    async def get_tool_usage_stats(self) -> dict[str, int]:
        """Call count per tool name, most used first."""
        async with self._lock:
            async with self._conn().execute(
                """
                SELECT tool_name, COUNT(*) AS count
                FROM tool_runs
                GROUP BY tool_name
                ORDER BY count DESC
                """
            ) as cursor:
                rows = await cursor.fetchall()
        return {row["tool_name"]: row["count"] for row in rows}
