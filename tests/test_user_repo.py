# tests/test_user_repo.py
from __future__ import annotations

import pytest

from examprep.storage import Database, SQLiteDB, UserRepo

from .dbutil import RecordingDB, count_rows, insert_account, insert_session, insert_user


@pytest.mark.asyncio
async def test_delete_user_is_one_statement_and_cascades(database: Database, sqlite_db: SQLiteDB):
    uid = insert_user(sqlite_db, "gone@example.com")
    keep = insert_user(sqlite_db, "kept@example.com")
    for u in (uid, keep):
        insert_session(sqlite_db, u)
        insert_account(sqlite_db, u)
    recording = RecordingDB(database)

    await UserRepo(recording).delete_user(uid)

    assert recording.writes == ["DELETE FROM users WHERE id = ?;"]
    for table in ("users", "sessions", "accounts"):
        assert count_rows(sqlite_db, table, uid) == 0
        assert count_rows(sqlite_db, table, keep) == 1


@pytest.mark.asyncio
async def test_list_users_tolerates_negative_levels(database: Database, sqlite_db: SQLiteDB):
    insert_user(sqlite_db, "legacy@example.com", access_level=-1)

    users = await UserRepo(database).list_users()

    assert [u.access_level for u in users] == [-1]
