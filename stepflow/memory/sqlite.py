"""SQLite implementation of the memory store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .store import MemoryStore


class SQLiteMemoryStore(MemoryStore):
    """Persist thread memory as JSON blobs in SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS memory (
                    thread_id TEXT PRIMARY KEY,
                    state TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    # ------------------------------------------------------------------
    # Store API
    async def load(self, thread_id: str) -> dict[str, Any] | None:
        def _select() -> sqlite3.Row | None:
            return self._conn.execute(
                "SELECT state FROM memory WHERE thread_id = ?", (thread_id,)
            ).fetchone()

        row = await asyncio.to_thread(_select)
        return json.loads(row["state"]) if row else None

    async def save(self, thread_id: str, state: dict[str, Any]) -> None:
        payload = json.dumps(state, default=str)
        updated_at = datetime.now(timezone.utc).isoformat()

        def _upsert() -> None:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO memory (thread_id, state, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(thread_id) DO UPDATE SET
                        state = excluded.state,
                        updated_at = excluded.updated_at
                    """,
                    (thread_id, payload, updated_at),
                )

        await asyncio.to_thread(_upsert)

    async def list_threads(self) -> list[str]:
        def _select_all() -> list[sqlite3.Row]:
            return self._conn.execute(
                "SELECT thread_id FROM memory ORDER BY updated_at"
            ).fetchall()

        return [r["thread_id"] for r in await asyncio.to_thread(_select_all)]

    def close(self) -> None:
        self._conn.close()
