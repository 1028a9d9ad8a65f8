# tests/test_watch.py
from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from examprep.access import Debouncer, PollingFileWatcher


@pytest.mark.asyncio
async def test_debouncer_coalesces_a_burst():
    calls: list[int] = []

    async def callback():
        calls.append(1)

    debouncer = Debouncer(0.05, callback)
    for _ in range(5):
        debouncer.trigger()
        await asyncio.sleep(0.01)
    assert calls == []
    assert debouncer.pending

    await asyncio.sleep(0.15)
    assert calls == [1]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_debouncer_fires_once_per_settled_burst():
    calls: list[int] = []

    async def callback():
        calls.append(1)

    debouncer = Debouncer(0.02, callback)
    debouncer.trigger()
    await asyncio.sleep(0.1)
    debouncer.trigger()
    await asyncio.sleep(0.1)

    assert calls == [1, 1]


@pytest.mark.asyncio
async def test_debouncer_cancel_and_callback_errors():
    calls: list[int] = []

    async def failing():
        calls.append(1)
        raise RuntimeError("sync failed")

    debouncer = Debouncer(0.02, failing)
    debouncer.trigger()
    debouncer.cancel()
    await asyncio.sleep(0.06)
    assert calls == []

    debouncer.trigger()
    await asyncio.sleep(0.06)
    await debouncer.drain()
    assert calls == [1]


def test_debouncer_rejects_negative_delay():
    async def noop():
        return None

    with pytest.raises(ValueError):
        Debouncer(-1, noop)


@pytest.mark.asyncio
async def test_polling_watcher_reports_changes(tmp_path: Path):
    path = tmp_path / "pending-users.json"
    changes: list[int] = []
    watcher = PollingFileWatcher(path, lambda: changes.append(1), interval_s=0.01)

    watcher.start()
    watcher.start()
    try:
        await asyncio.sleep(0.05)
        assert changes == []

        path.write_text("[]", encoding="utf-8")
        await asyncio.sleep(0.05)
        assert len(changes) == 1

        path.write_text('[{"id": 1}]', encoding="utf-8")
        await asyncio.sleep(0.05)
        assert len(changes) == 2

        path.unlink()
        await asyncio.sleep(0.05)
        assert len(changes) == 3
    finally:
        await watcher.stop()

    assert not watcher.running


@pytest.mark.asyncio
async def test_polling_watcher_survives_handler_errors(tmp_path: Path):
    path = tmp_path / "pending-users.json"
    calls: list[int] = []

    def handler():
        calls.append(1)
        raise RuntimeError("boom")

    watcher = PollingFileWatcher(path, handler, interval_s=0.01)
    watcher.start()
    try:
        path.write_text("[]", encoding="utf-8")
        await asyncio.sleep(0.05)
        path.write_text("[1, 2]", encoding="utf-8")
        await asyncio.sleep(0.05)
        assert watcher.running
    finally:
        await watcher.stop()

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_polling_watcher_sees_same_size_edit_with_unchanged_mtime(tmp_path: Path):
    path = tmp_path / "pending-users.json"
    path.write_text('[{"access_level": 1}]', encoding="utf-8")
    st = path.stat()
    changes: list[int] = []
    watcher = PollingFileWatcher(path, lambda: changes.append(1), interval_s=0.01)

    watcher.start()
    try:
        path.write_text('[{"access_level": 2}]', encoding="utf-8")
        os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns))
        await asyncio.sleep(0.05)
    finally:
        await watcher.stop()

    assert changes == [1]
