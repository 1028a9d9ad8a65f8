# src/examprep/engine/workflows.py
"""
Subject processing pipeline.

Uploading a syllabus kicks off two background steps:
  - process A decomposes the syllabus into topics
  - process B extracts past-paper questions and files them under those topics

B depends on A and receives A's topics, so it only starts once they exist.
The AI calls themselves are injected; this module only wires them into the queue.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from examprep.domain.states import TaskStatus, TaskType

from .queue import Task, TaskQueue

Topics = TypeVar("Topics")
Questions = TypeVar("Questions")


def process_a_id(subject_id: str) -> str:
    return f"process-a-{subject_id}"


def process_b_id(subject_id: str) -> str:
    return f"process-b-{subject_id}"


@dataclass(frozen=True)
class SubjectTasks:
    decomposition: str
    extraction: str


def submit_subject_processing(
    queue: TaskQueue,
    subject_id: str,
    decompose: Callable[[], Awaitable[Topics]],
    extract: Callable[[Topics], Awaitable[Questions]],
    *,
    subject_name: str = "",
) -> SubjectTasks:
    label = f" for {subject_name}" if subject_name else ""
    a_id = process_a_id(subject_id)
    b_id = process_b_id(subject_id)

    decomposition: Task[Topics] = Task(
        id=a_id,
        type=TaskType.PROCESS_A,
        display_name=f"Analyzing syllabus{label}",
        execute=decompose,
        subject_id=subject_id,
    )

    async def _extract() -> Questions:
        topics: Topics = queue.result_of(a_id)
        return await extract(topics)

    extraction: Task[Questions] = Task(
        id=b_id,
        type=TaskType.PROCESS_B,
        display_name=f"Extracting questions{label}",
        execute=_extract,
        subject_id=subject_id,
        depends_on=a_id,
    )

    queue.add_task(decomposition)
    queue.add_task(extraction)
    return SubjectTasks(decomposition=a_id, extraction=b_id)


def is_subject_ready(queue: TaskQueue, subject_id: str) -> bool:
    """
    True once the subject's topics exist: process A finished or was never queued.
    """
    task = queue.get_task_by_id(process_a_id(subject_id))
    return task is None or task.status is TaskStatus.COMPLETED
