from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id     INTEGER NOT NULL,
    command     TEXT NOT NULL,
    started_at  TEXT NOT NULL,
    ended_at    TEXT,
    exit_code   INTEGER,
    status      TEXT NOT NULL DEFAULT 'running',
    row_count   INTEGER,
    column_count INTEGER
);
CREATE INDEX IF NOT EXISTS idx_runs_chat_id ON runs(chat_id);
CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status);
"""


class Database:
    """Async SQLite wrapper for the command run history.

    One row per command run from a chat: the command text, timing, exit
    code, final status and the shape of the table that was produced.
    """

    def __init__(self, path: str) -> None:
        """Initialize the database handle without opening a connection.

        Args:
            path: Filesystem path to the SQLite database file.
        """
        self._path = path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database connection and ensure the schema exists.

        Creates the parent directory when missing, then the runs table
        and its indexes.
        """
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        """Close the database connection if one is open."""
        if self._db:
            await self._db.close()
            self._db = None

    async def start_run(self, chat_id: int, command: str) -> int:
        """Insert a running row and return its ID."""
        now = datetime.now(timezone.utc).isoformat()
        cursor = await self._db.execute(
            "INSERT INTO runs (chat_id, command, started_at, status) "
            "VALUES (?, ?, ?, 'running')",
            (chat_id, command, now),
        )
        await self._db.commit()
        return cursor.lastrowid

    async def finish_run(
        self,
        run_id: int,
        exit_code: int | None,
        status: str,
        rows: int | None = None,
        columns: int | None = None,
    ) -> None:
        """Record the outcome of a run.

        Args:
            run_id: Primary key of the run.
            exit_code: Process exit code, or None if it never exited
                normally.
            status: Final status ('completed', 'error', 'timeout', 'failed').
            rows: Number of table rows sent to the viewer.
            columns: Width of the table sent to the viewer.
        """
        now = datetime.now(timezone.utc).isoformat()
        await self._db.execute(
            "UPDATE runs SET ended_at = ?, exit_code = ?, status = ?, row_count = ?, column_count = ? "
            "WHERE id = ?",
            (now, exit_code, status, rows, columns, run_id),
        )
        await self._db.commit()

    async def get_run(self, run_id: int) -> dict | None:
        cursor = await self._db.execute("SELECT * FROM runs WHERE id = ?", (run_id,))
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def list_runs(self, chat_id: int, limit: int = 20) -> list[dict]:
        """Return a chat's most recent runs, newest first."""
        cursor = await self._db.execute(
            "SELECT * FROM runs WHERE chat_id = ? ORDER BY id DESC LIMIT ?",
            (chat_id, limit),
        )
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def mark_running_lost(self) -> int:
        """Mark runs interrupted by a previous shutdown as 'lost'.

        Returns:
            Number of rows updated.
        """
        now = datetime.now(timezone.utc).isoformat()
        cursor = await self._db.execute(
            "UPDATE runs SET status = 'lost', ended_at = ? WHERE status = 'running'",
            (now,),
        )
        await self._db.commit()
        return cursor.rowcount
