# src/examprep/storage/__init__.py
"""
Storage layer for examprep (SQLite).

- db: connection factory + async all/get/run facade
- migrations: lightweight SQL migrations runner
- users: user/session/account data access
"""

from .db import Database, RunResult, SQLiteDB
from .migrations import apply_migrations
from .users import AsyncDB, UserRepo

__all__ = ["AsyncDB", "Database", "RunResult", "SQLiteDB", "UserRepo", "apply_migrations"]
