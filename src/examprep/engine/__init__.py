# src/examprep/engine/__init__.py
"""
Background execution engine for examprep.

- queue: dependency-aware asyncio task queue
- workflows: syllabus decomposition -> question extraction pipeline
"""

from .queue import QueueState, Task, TaskQueue
from .workflows import SubjectTasks, is_subject_ready, submit_subject_processing

__all__ = [
    "QueueState",
    "SubjectTasks",
    "Task",
    "TaskQueue",
    "is_subject_ready",
    "submit_subject_processing",
]
