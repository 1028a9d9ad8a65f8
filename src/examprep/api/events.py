# src/examprep/api/events.py
from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Awaitable, Callable, Optional

from examprep.access import UserAccessSync
from examprep.logging import get_logger

_LOG = get_logger(__name__)


def sse_message(payload: dict) -> str:
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


async def session_event_stream(
    access_sync: UserAccessSync,
    user_id: int,
    *,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    keepalive_s: float = 15.0,
) -> AsyncIterator[str]:
    """
    Server-sent events telling one signed-in user their session was invalidated.

    Emits `connected` first, then `session_invalidated` each time a sync
    changes or deletes the user. Comment lines keep idle connections open.
    """
    changes: asyncio.Queue[int] = asyncio.Queue()

    def _on_change(changed_id: int) -> None:
        if changed_id == user_id:
            changes.put_nowait(changed_id)

    unsubscribe = access_sync.on_user_change(_on_change)
    try:
        yield sse_message({"type": "connected"})
        while True:
            if is_disconnected is not None and await is_disconnected():
                break
            try:
                await asyncio.wait_for(changes.get(), timeout=keepalive_s)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            _LOG.info("Notifying user %d of session invalidation", user_id)
            yield sse_message({"type": "session_invalidated"})
    finally:
        unsubscribe()
        _LOG.debug("User %d disconnected from session events", user_id)
