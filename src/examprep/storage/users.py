# src/examprep/storage/users.py
from __future__ import annotations

import time
from typing import Any, Optional, Protocol, Sequence

from examprep.domain.models import UserRecord
from examprep.logging import get_logger

_LOG = get_logger(__name__)


class AsyncDB(Protocol):
    """
    The database-access object access sync is built on.

    examprep.storage.db.Database implements it; tests may inject fakes.
    """

    async def all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]: ...

    async def get(self, sql: str, params: Sequence[Any] = ()) -> Optional[dict[str, Any]]: ...

    async def run(self, sql: str, params: Sequence[Any] = ()) -> Any: ...


class UserRepo:
    """
    All SQL touching users, sessions and accounts.

    Deletion removes dependent rows explicitly instead of relying on
    ON DELETE CASCADE, so a database opened without foreign_keys still
    ends up consistent.
    """

    def __init__(self, db: AsyncDB) -> None:
        self.db = db

    # -------------------------
    # Read operations
    # -------------------------

    async def list_users(self) -> list[UserRecord]:
        rows = await self.db.all(
            """
            SELECT id, email, name, access_level, created_at
            FROM users
            ORDER BY created_at DESC, id DESC;
            """
        )
        return [UserRecord.model_validate(r) for r in rows]

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        row = await self.db.get(
            "SELECT id, email, name, access_level, created_at FROM users WHERE id = ?;",
            (user_id,),
        )
        return UserRecord.model_validate(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = await self.db.get(
            "SELECT id, email, name, access_level, created_at FROM users WHERE email = ?;",
            (email,),
        )
        return UserRecord.model_validate(row) if row else None

    # -------------------------
    # Write operations
    # -------------------------

    async def update_user(self, user_id: int, *, access_level: int, name: Optional[str]) -> None:
        await self.db.run(
            "UPDATE users SET access_level = ?, name = ?, updated_at = ? WHERE id = ?;",
            (access_level, name, int(time.time()), user_id),
        )

    async def update_access_level(self, user_id: int, access_level: int) -> None:
        await self.db.run(
            "UPDATE users SET access_level = ?, updated_at = ? WHERE id = ?;",
            (access_level, int(time.time()), user_id),
        )

    async def delete_sessions(self, user_id: int) -> None:
        await self.db.run("DELETE FROM sessions WHERE user_id = ?;", (user_id,))

    async def delete_user(self, user_id: int) -> None:
        """
        Deletes the user; sessions and linked accounts go with it through
        the ON DELETE CASCADE foreign keys in one statement.
        """
        await self.db.run("DELETE FROM users WHERE id = ?;", (user_id,))
        _LOG.info("Deleted user %d with its sessions and accounts.", user_id)
