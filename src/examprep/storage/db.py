# src/examprep/storage/db.py
from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

Params = Sequence[Any]


@dataclass(frozen=True)
class RunResult:
    last_row_id: Optional[int]
    changes: int


@dataclass(frozen=True)
class SQLiteDB:
    """
    SQLite connection factory.

    Notes:
    - Use one connection per thread.
    - Apply pragmas on each connection.
    - WAL mode lets the access file sync read while request handlers write.
    """
    db_path: Path
    timeout_s: float = 5.0

    def connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.timeout_s,
            isolation_level=None,          # autocommit; explicit BEGIN where needed
            check_same_thread=True,
        )
        conn.row_factory = sqlite3.Row
        self._apply_pragmas(conn)
        return conn

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        cur = conn.cursor()
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA foreign_keys=ON;")
        # Reduce spurious 'database is locked'
        cur.execute("PRAGMA busy_timeout=5000;")
        cur.execute("PRAGMA synchronous=NORMAL;")
        cur.close()


class Database:
    """
    Async facade over SQLiteDB exposing all/get/run.

    Each call runs on a worker thread with its own connection, so callers on
    the event loop never block on disk I/O and no connection crosses threads.
    """

    def __init__(self, sqlite_db: SQLiteDB) -> None:
        self._sqlite = sqlite_db

    @property
    def path(self) -> Path:
        return self._sqlite.db_path

    async def all(self, sql: str, params: Params = ()) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._all_sync, sql, tuple(params))

    async def get(self, sql: str, params: Params = ()) -> Optional[dict[str, Any]]:
        return await asyncio.to_thread(self._get_sync, sql, tuple(params))

    async def run(self, sql: str, params: Params = ()) -> RunResult:
        return await asyncio.to_thread(self._run_sync, sql, tuple(params))

    def _all_sync(self, sql: str, params: tuple) -> list[dict[str, Any]]:
        conn = self._sqlite.connect()
        try:
            return [dict(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def _get_sync(self, sql: str, params: tuple) -> Optional[dict[str, Any]]:
        conn = self._sqlite.connect()
        try:
            row = conn.execute(sql, params).fetchone()
            return dict(row) if row is not None else None
        finally:
            conn.close()

    def _run_sync(self, sql: str, params: tuple) -> RunResult:
        conn = self._sqlite.connect()
        try:
            cur = conn.execute(sql, params)
            return RunResult(last_row_id=cur.lastrowid, changes=cur.rowcount)
        finally:
            conn.close()
