# src/examprep/api/routes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from examprep.access import UserAccessSync
from examprep.domain.errors import (
    ConflictError,
    ExamPrepError,
    NotFoundError,
)
from examprep.domain.models import (
    AccessLevelUpdate,
    AccessLevelView,
    ErrorResponse,
    QueueStateView,
    SyncReport,
    TaskView,
)
from examprep.engine import TaskQueue
from examprep.logging import get_logger

from .deps import get_access_sync, get_queue
from .events import session_event_stream

_LOG = get_logger(__name__)
router = APIRouter()


def _error_response(err: ExamPrepError, http_status: int) -> JSONResponse:
    payload = ErrorResponse(
        error=err.message,
        code=err.code,
        details=err.details or {},
    ).model_dump()
    return JSONResponse(status_code=http_status, content=payload)


def _status_for(err: ExamPrepError) -> int:
    if isinstance(err, NotFoundError):
        return 404
    if isinstance(err, ConflictError):
        return 409
    return 400


@router.get("/healthz")
def healthz() -> dict:
    return {"ok": True}


# -------------------------
# Background tasks
# -------------------------

@router.get("/tasks", response_model=QueueStateView)
async def list_tasks(queue: TaskQueue = Depends(get_queue)):
    return queue.get_state().to_view()


@router.get("/tasks/{task_id}", response_model=TaskView)
async def get_task_status(task_id: str, queue: TaskQueue = Depends(get_queue)):
    task = queue.get_task_by_id(task_id)
    if task is None:
        return _error_response(NotFoundError(f"Task not found: {task_id}", details={"id": task_id}), 404)
    return task.to_view()


@router.delete("/tasks/{task_id}", status_code=204, response_model=None)
async def remove_task(task_id: str, queue: TaskQueue = Depends(get_queue)):
    """
    Dismisses a finished task from the progress list.
    """
    try:
        queue.remove_task(task_id)
    except ExamPrepError as e:
        return _error_response(e, _status_for(e))
    return None


# -------------------------
# User access
# -------------------------

@router.get("/users/access-level", response_model=AccessLevelView)
async def get_access_level(
    email: str = Query(min_length=1),
    access_sync: UserAccessSync = Depends(get_access_sync),
):
    try:
        level = await access_sync.get_user_access_level(email)
    except NotFoundError as e:
        return _error_response(e, 404)
    return AccessLevelView(access_level=level)


@router.put("/users/{user_id}/access-level", response_model=AccessLevelView)
async def set_access_level(
    user_id: int,
    payload: AccessLevelUpdate,
    access_sync: UserAccessSync = Depends(get_access_sync),
):
    """
    Changes a user's access level directly; the user is signed out.
    """
    try:
        user = await access_sync.update_user_access_level(user_id, payload.access_level)
    except ExamPrepError as e:
        return _error_response(e, _status_for(e))
    return AccessLevelView(access_level=user.access_level)


@router.get("/users/{user_id}/session-events")
async def session_events(
    user_id: int,
    request: Request,
    access_sync: UserAccessSync = Depends(get_access_sync),
):
    return StreamingResponse(
        session_event_stream(access_sync, user_id, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/access-sync/file-to-db", response_model=SyncReport)
async def run_file_to_db(access_sync: UserAccessSync = Depends(get_access_sync)):
    return await access_sync.sync_file_to_database()


@router.post("/access-sync/db-to-file")
async def run_db_to_file(access_sync: UserAccessSync = Depends(get_access_sync)) -> dict:
    return {"ok": await access_sync.sync_database_to_file()}
