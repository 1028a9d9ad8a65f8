# tests/dbutil.py
"""
Synchronous SQLite helpers for arranging and inspecting test databases.
"""
from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any, Optional, Sequence

from examprep.storage import Database, SQLiteDB, apply_migrations

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"

_tokens = itertools.count(1)


def make_db(path: Path) -> SQLiteDB:
    db = SQLiteDB(path)
    conn = db.connect()
    try:
        apply_migrations(conn, MIGRATIONS_DIR)
    finally:
        conn.close()
    return db


def insert_user(
    db: SQLiteDB,
    email: str,
    *,
    name: Optional[str] = None,
    access_level: int = 0,
    created_at: int = 1_700_000_000,
) -> int:
    conn = db.connect()
    try:
        cur = conn.execute(
            "INSERT INTO users(email, name, access_level, created_at, updated_at) VALUES (?, ?, ?, ?, ?);",
            (email, name, access_level, created_at, created_at),
        )
        return int(cur.lastrowid)
    finally:
        conn.close()


def insert_session(db: SQLiteDB, user_id: int) -> None:
    conn = db.connect()
    try:
        conn.execute(
            "INSERT INTO sessions(session_token, user_id, expires) VALUES (?, ?, ?);",
            (f"token-{next(_tokens)}", user_id, 4_000_000_000),
        )
    finally:
        conn.close()


def insert_account(db: SQLiteDB, user_id: int, provider: str = "google") -> None:
    conn = db.connect()
    try:
        conn.execute(
            "INSERT INTO accounts(user_id, type, provider, provider_account_id) VALUES (?, 'oauth', ?, ?);",
            (user_id, provider, f"acct-{next(_tokens)}"),
        )
    finally:
        conn.close()


def fetch_user(db: SQLiteDB, user_id: int) -> Optional[dict[str, Any]]:
    conn = db.connect()
    try:
        row = conn.execute("SELECT * FROM users WHERE id = ?;", (user_id,)).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def count_rows(db: SQLiteDB, table: str, user_id: int) -> int:
    column = "id" if table == "users" else "user_id"
    conn = db.connect()
    try:
        row = conn.execute(f"SELECT COUNT(*) AS c FROM {table} WHERE {column} = ?;", (user_id,)).fetchone()
        return int(row["c"])
    finally:
        conn.close()


class RecordingDB:
    """
    Wraps a Database and records every statement sent through run().
    """

    def __init__(self, inner: Database) -> None:
        self.inner = inner
        self.writes: list[str] = []

    async def all(self, sql: str, params: Sequence[Any] = ()):
        return await self.inner.all(sql, params)

    async def get(self, sql: str, params: Sequence[Any] = ()):
        return await self.inner.get(sql, params)

    async def run(self, sql: str, params: Sequence[Any] = ()):
        self.writes.append(" ".join(sql.split()))
        return await self.inner.run(sql, params)
