# src/examprep/api/deps.py
from __future__ import annotations

from fastapi import Request

from examprep.access import UserAccessSync
from examprep.config import Settings
from examprep.engine import TaskQueue


def get_settings(request: Request) -> Settings:
    """
    Per-request access to settings stored on app.state during startup.
    """
    return request.app.state.settings  # type: ignore[attr-defined]


def get_queue(request: Request) -> TaskQueue:
    return request.app.state.queue  # type: ignore[attr-defined]


def get_access_sync(request: Request) -> UserAccessSync:
    return request.app.state.access_sync  # type: ignore[attr-defined]
