# src/examprep/engine/queue.py
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from examprep.domain.errors import ConflictError, DependencyError, NotFoundError, ValidationError
from examprep.domain.models import QueueStateView, TaskView
from examprep.domain.states import TaskStatus, TaskType
from examprep.logging import get_logger

_LOG = get_logger(__name__)

T = TypeVar("T")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(eq=False)
class Task(Generic[T]):
    """
    A unit of background work.

    execute() is awaited once; its return value becomes `result`, which
    tasks depending on this one read after it is COMPLETED.
    """
    id: str
    type: TaskType
    display_name: str
    execute: Callable[[], Awaitable[T]] = field(repr=False)
    subject_id: Optional[str] = None
    depends_on: Optional[str] = None

    status: TaskStatus = TaskStatus.PENDING
    result: Optional[T] = field(default=None, repr=False)
    error: Optional[str] = None

    created_at: int = 0
    started_at: Optional[int] = None
    finished_at: Optional[int] = None

    _done: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)

    def to_view(self) -> TaskView:
        return TaskView(
            id=self.id,
            type=self.type,
            status=self.status,
            display_name=self.display_name,
            subject_id=self.subject_id,
            depends_on=self.depends_on,
            error=self.error,
            created_at=self.created_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )


@dataclass(frozen=True)
class QueueState:
    tasks: list[Task[Any]]
    running: list[Task[Any]]

    @property
    def current_task(self) -> Optional[Task[Any]]:
        return self.running[0] if self.running else None

    def to_view(self) -> QueueStateView:
        current = self.current_task
        return QueueStateView(
            tasks=[t.to_view() for t in self.tasks],
            current_task=current.to_view() if current else None,
            running=[t.id for t in self.running],
        )


Listener = Callable[[QueueState], None]


class TaskQueue:
    """
    In-process, dependency-aware scheduler for background workflows.

    - add_task() registers a task as PENDING and schedules a pump on the loop
    - the pump starts every PENDING task whose dependency is COMPLETED,
      up to max_concurrent running at once (None = unbounded)
    - a failed task is never retried; its pending dependents become BLOCKED
    - completed tasks are dropped after completed_ttl_s once nothing
      still waiting depends on them; their ids stay reserved

    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        *,
        max_concurrent: Optional[int] = None,
        completed_ttl_s: Optional[float] = 3.0,
    ) -> None:
        if max_concurrent is not None and max_concurrent <= 0:
            raise ValueError("max_concurrent must be > 0 or None")

        self._max_concurrent = max_concurrent
        self._completed_ttl_s = completed_ttl_s

        self._tasks: dict[str, Task[Any]] = {}
        self._seen_ids: set[str] = set()
        self._listeners: set[Listener] = set()
        self._running: dict[str, asyncio.Task[None]] = {}
        self._expiry: dict[str, asyncio.TimerHandle] = {}
        self._pump_scheduled = False
        self._closed = False

    # -------------------------
    # Submission
    # -------------------------

    def add_task(self, task: Task[T]) -> Task[T]:
        if self._closed:
            raise RuntimeError("task queue is shut down")
        if not task.id:
            raise ValidationError("task id must not be empty")
        if task.id in self._seen_ids:
            raise ConflictError(f"Task already exists: {task.id}", details={"id": task.id})
        if task.depends_on == task.id:
            raise ValidationError("task cannot depend on itself", details={"id": task.id})

        dependency: Optional[Task[Any]] = None
        if task.depends_on is not None:
            dependency = self._tasks.get(task.depends_on)
            if dependency is None:
                raise DependencyError(
                    "Dependency does not exist",
                    details={"id": task.id, "missing": task.depends_on},
                )

        loop = asyncio.get_running_loop()

        task.status = TaskStatus.PENDING
        task.created_at = now_ms()
        self._seen_ids.add(task.id)
        self._tasks[task.id] = task

        if dependency is not None and dependency.status in (TaskStatus.FAILED, TaskStatus.BLOCKED):
            self._mark_blocked(task, dependency.id)
        else:
            _LOG.info("Queued task %s (%s)%s", task.id, task.type,
                      f" after {task.depends_on}" if task.depends_on else "")

        self._notify()
        self._schedule_pump(loop)
        return task

    # -------------------------
    # Lookup
    # -------------------------

    def get_task_by_id(self, task_id: str) -> Optional[Task[Any]]:
        return self._tasks.get(task_id)

    def get_tasks(self) -> list[Task[Any]]:
        return list(self._tasks.values())

    def get_state(self) -> QueueState:
        return QueueState(
            tasks=list(self._tasks.values()),
            running=[self._tasks[tid] for tid in self._running if tid in self._tasks],
        )

    @property
    def current_task(self) -> Optional[Task[Any]]:
        return self.get_state().current_task

    def result_of(self, task_id: str) -> Any:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}", details={"id": task_id})
        if task.status is not TaskStatus.COMPLETED:
            raise DependencyError(
                f"Task {task_id} has not completed",
                details={"id": task_id, "status": task.status.value},
            )
        return task.result

    async def wait_for(self, task_id: str) -> Task[Any]:
        """
        Waits until the task reaches a terminal state and returns it.
        """
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}", details={"id": task_id})
        await task._done.wait()
        return task

    # -------------------------
    # Listeners
    # -------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Registers a state listener and calls it once with the current state.
        Returns a function that unsubscribes it.
        """
        self._listeners.add(listener)
        self._call_listener(listener, self.get_state())
        return lambda: self._listeners.discard(listener)

    def _notify(self) -> None:
        state = self.get_state()
        for listener in list(self._listeners):
            self._call_listener(listener, state)

    @staticmethod
    def _call_listener(listener: Listener, state: QueueState) -> None:
        try:
            listener(state)
        except Exception:
            _LOG.exception("Queue listener raised (ignored).")

    # -------------------------
    # Removal
    # -------------------------

    def remove_task(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}", details={"id": task_id})
        if not task.status.is_terminal:
            raise ConflictError(
                "Only finished tasks can be removed",
                details={"id": task_id, "status": task.status.value},
            )
        if self._has_waiting_dependents(task_id):
            raise ConflictError(
                "Task still has dependents waiting on it",
                details={"id": task_id},
            )
        self._drop(task_id)
        self._notify()

    def clear_all(self) -> int:
        """
        Removes every finished task nothing is waiting on. Returns how many.
        """
        removable = [
            t.id for t in self._tasks.values()
            if t.status.is_terminal and not self._has_waiting_dependents(t.id)
        ]
        for task_id in removable:
            self._drop(task_id)
        if removable:
            self._notify()
        return len(removable)

    def _drop(self, task_id: str) -> None:
        handle = self._expiry.pop(task_id, None)
        if handle is not None:
            handle.cancel()
        self._tasks.pop(task_id, None)

    def _has_waiting_dependents(self, task_id: str) -> bool:
        return any(
            t.depends_on == task_id and not t.status.is_terminal
            for t in self._tasks.values()
        )

    def _schedule_expiry(self, task: Task[Any]) -> None:
        if self._completed_ttl_s is None or self._closed:
            return
        loop = asyncio.get_running_loop()
        self._expiry[task.id] = loop.call_later(self._completed_ttl_s, self._expire, task.id)

    def _expire(self, task_id: str) -> None:
        self._expiry.pop(task_id, None)
        task = self._tasks.get(task_id)
        if task is None:
            return
        if self._has_waiting_dependents(task_id):
            self._schedule_expiry(task)
            return
        self._tasks.pop(task_id, None)
        _LOG.debug("Expired completed task %s", task_id)
        self._notify()

    # -------------------------
    # Scheduling
    # -------------------------

    def _schedule_pump(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._pump_scheduled:
            return
        self._pump_scheduled = True
        loop.call_soon(self._pump)

    def _has_capacity(self) -> bool:
        return self._max_concurrent is None or len(self._running) < self._max_concurrent

    def _is_eligible(self, task: Task[Any]) -> bool:
        if task.status is not TaskStatus.PENDING:
            return False
        if task.depends_on is None:
            return True
        dependency = self._tasks.get(task.depends_on)
        return dependency is not None and dependency.status is TaskStatus.COMPLETED

    def _pump(self) -> None:
        self._pump_scheduled = False
        if self._closed:
            return
        started = False
        for task in list(self._tasks.values()):
            if not self._has_capacity():
                break
            if self._is_eligible(task):
                self._start(task)
                started = True
        if started:
            self._notify()

    def _start(self, task: Task[Any]) -> None:
        task.status = TaskStatus.RUNNING
        task.started_at = now_ms()
        _LOG.info("Running task %s (%s)", task.id, task.display_name)
        self._running[task.id] = asyncio.get_running_loop().create_task(
            self._run(task), name=f"examprep-task-{task.id}"
        )

    async def _run(self, task: Task[Any]) -> None:
        try:
            result = await task.execute()
        except asyncio.CancelledError:
            self._mark_failed(task, "cancelled")
            raise
        except Exception as e:
            _LOG.exception("Task %s failed.", task.id)
            self._mark_failed(task, str(e) or type(e).__name__)
        else:
            task.result = result
            task.status = TaskStatus.COMPLETED
            task.finished_at = now_ms()
            task._done.set()
            _LOG.info("Completed task %s in %dms", task.id, task.finished_at - (task.started_at or task.finished_at))
            self._schedule_expiry(task)
        finally:
            self._running.pop(task.id, None)
            self._notify()
            self._schedule_pump(asyncio.get_running_loop())

    def _mark_failed(self, task: Task[Any], error: str) -> None:
        task.status = TaskStatus.FAILED
        task.error = error
        task.finished_at = now_ms()
        task._done.set()

        # Everything downstream of a failure can never run.
        frontier = [task.id]
        while frontier:
            failed_id = frontier.pop()
            for t in self._tasks.values():
                if t.depends_on == failed_id and t.status is TaskStatus.PENDING:
                    self._mark_blocked(t, failed_id)
                    frontier.append(t.id)

    def _mark_blocked(self, task: Task[Any], dependency_id: str) -> None:
        task.status = TaskStatus.BLOCKED
        task.error = f"dependency {dependency_id} failed"
        task.finished_at = now_ms()
        task._done.set()
        _LOG.warning("Task %s blocked: dependency %s failed", task.id, dependency_id)

    async def shutdown(self) -> None:
        """
        Runs everything already submitted to completion, then closes the queue.

        Tasks whose dependency can never complete stay PENDING. Once this
        returns nothing else starts and add_task() raises RuntimeError.
        """
        while True:
            self._pump()
            running = list(self._running.values())
            if not running:
                break
            _LOG.info("Waiting for %d running task(s)...", len(running))
            await asyncio.gather(*running, return_exceptions=True)

        self._closed = True
        for handle in self._expiry.values():
            handle.cancel()
        self._expiry.clear()
