# src/examprep/access/watch.py
from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from examprep.logging import get_logger

_LOG = get_logger(__name__)

Signature = Optional[tuple[int, bytes]]


class Debouncer:
    """
    Coalesces a burst of trigger() calls into one callback run.

    Every trigger() restarts the timer; the callback runs once the triggers
    stop for `delay_s`. Callback errors are logged, not raised.
    """

    def __init__(self, delay_s: float, callback: Callable[[], Awaitable[Any]]) -> None:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self._delay_s = delay_s
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = asyncio.get_running_loop().call_later(self._delay_s, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def drain(self) -> None:
        """Waits for callback runs that already started."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception:
            _LOG.exception("Debounced callback failed.")


class PollingFileWatcher:
    """
    Calls on_change() whenever the file's (size, content digest) signature
    changes. mtime is not used: a quick same-size edit can keep it.

    Polling survives editors that save by replacing the file, which would
    orphan an inode-based watch. A missing file has signature None, so
    deleting and recreating the file both count as changes.
    """

    def __init__(self, path: Path, on_change: Callable[[], None], *, interval_s: float = 0.25) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._path = path
        self._on_change = on_change
        self._interval_s = interval_s
        self._last: Signature = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._last = self._signature()
        self._task = asyncio.get_running_loop().create_task(
            self._run_loop(), name=f"watch-{self._path.name}"
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                current = self._signature()
            except OSError:
                _LOG.exception("Could not read %s (continuing).", self._path)
                continue
            if current == self._last:
                continue
            self._last = current
            try:
                self._on_change()
            except Exception:
                _LOG.exception("File change handler failed (continuing).")

    def _signature(self) -> Signature:
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            return None
        return (len(data), hashlib.sha256(data).digest())
