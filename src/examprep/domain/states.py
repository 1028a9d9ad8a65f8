# src/examprep/domain/states.py
from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Lifecycle of a background task.

      - PENDING: submitted; runnable once its dependency (if any) is COMPLETED
      - RUNNING: execute() is in flight
      - COMPLETED: execute() returned; result is set
      - FAILED: execute() raised; never retried
      - BLOCKED: will never run because its dependency FAILED or was BLOCKED
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.BLOCKED)


class TaskType(StrEnum):
    """
    Workflow stage of a task.

      - PROCESS_A: syllabus decomposition into topics
      - PROCESS_B: question extraction from past papers
      - PROCESS_C: post-processing (diagrams, mark schemes)
    """

    PROCESS_A = "process_a"
    PROCESS_B = "process_b"
    PROCESS_C = "process_c"
