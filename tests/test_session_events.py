# tests/test_session_events.py
from __future__ import annotations

import asyncio

import pytest

from examprep.access import UserAccessSync
from examprep.api.events import session_event_stream

from .dbutil import insert_user


@pytest.mark.asyncio
async def test_stream_announces_invalidation_for_its_user(access_sync: UserAccessSync, sqlite_db):
    uid = insert_user(sqlite_db, "me@example.com", access_level=0)
    other = insert_user(sqlite_db, "other@example.com", access_level=0)

    stream = session_event_stream(access_sync, uid, keepalive_s=0.05)
    try:
        assert await stream.__anext__() == 'data: {"type":"connected"}\n\n'

        await access_sync.update_user_access_level(other, 1)
        assert await asyncio.wait_for(stream.__anext__(), timeout=1.0) == ": keepalive\n\n"

        await access_sync.update_user_access_level(uid, 1)
        assert await asyncio.wait_for(stream.__anext__(), timeout=1.0) == 'data: {"type":"session_invalidated"}\n\n'
    finally:
        await stream.aclose()


@pytest.mark.asyncio
async def test_stream_stops_when_client_disconnects(access_sync: UserAccessSync):
    async def gone() -> bool:
        return True

    events = [e async for e in session_event_stream(access_sync, 1, is_disconnected=gone)]

    assert events == ['data: {"type":"connected"}\n\n']
