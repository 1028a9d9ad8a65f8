from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .states import TaskStatus, TaskType


AccessLevel = Annotated[int, Field(ge=0)]

CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_created_at(epoch_s: int) -> str:
    """Human-readable UTC timestamp written to the access file."""
    return datetime.fromtimestamp(epoch_s, tz=timezone.utc).strftime(CREATED_AT_FORMAT)


class UserRecord(BaseModel):
    """
    A row of the users table, as far as access sync is concerned.
    """
    model_config = ConfigDict(extra="ignore")

    id: int
    email: str
    name: Optional[str] = None
    # Not range-checked: rows written outside this service are still listed.
    access_level: int = 0
    created_at: int

    def to_file_entry(self) -> "AccessFileEntry":
        # A negative level is shown as 0 (no access); the next file sync
        # writes that back to the row.
        return AccessFileEntry(
            id=self.id,
            email=self.email,
            name=self.name,
            access_level=max(self.access_level, 0),
            created_at=format_created_at(self.created_at),
        )


class AccessFileEntry(BaseModel):
    """
    One object of the admin-editable access file.

    Unknown keys are ignored so an editor's notes don't break the sync.
    """
    model_config = ConfigDict(extra="ignore")

    id: int
    email: str
    name: Optional[str] = None
    access_level: AccessLevel
    created_at: str = ""

    @field_validator("id", "access_level", mode="before")
    @classmethod
    def _reject_bool_and_float(cls, v):
        # JSON true/1.5 must not silently coerce into an id or level
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError("must be an integer")
        return v


class SyncReport(BaseModel):
    """
    Outcome of one file -> database reconciliation cycle.
    """
    model_config = ConfigDict(extra="forbid")

    skipped: bool = False
    repaired: bool = False
    deleted: list[int] = Field(default_factory=list)
    updated: list[int] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.deleted or self.updated)


class AccessLevelUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    access_level: AccessLevel


class AccessLevelView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    access_level: int


class TaskView(BaseModel):
    """
    API output model for a single background task.
    """
    model_config = ConfigDict(extra="forbid")

    id: str
    type: TaskType
    status: TaskStatus
    display_name: str
    subject_id: Optional[str] = None
    depends_on: Optional[str] = None
    error: Optional[str] = None

    created_at: int
    started_at: Optional[int] = None
    finished_at: Optional[int] = None


class QueueStateView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tasks: list[TaskView]
    current_task: Optional[TaskView] = None
    running: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    code: str
    details: dict = Field(default_factory=dict)
