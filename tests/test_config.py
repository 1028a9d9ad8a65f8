# tests/test_config.py
from pathlib import Path

import pytest

from examprep.config import load_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in ("EXAMPREP_DB_PATH", "EXAMPREP_ACCESS_FILE", "EXAMPREP_MAX_CONCURRENT",
                 "EXAMPREP_SKIP_MIGRATIONS", "EXAMPREP_DEBOUNCE_MS"):
        monkeypatch.delenv(name, raising=False)

    s = load_settings()

    assert s.db_path == Path("./db/examprep.db")
    assert s.access_file == Path("./pending-users.json")
    assert s.max_concurrent_tasks == 3
    assert s.skip_migrations is False
    assert s.debounce_s == 0.5


def test_zero_concurrency_means_unbounded(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EXAMPREP_MAX_CONCURRENT", "0")
    monkeypatch.setenv("EXAMPREP_SKIP_MIGRATIONS", "yes")

    s = load_settings()

    assert s.max_concurrent_tasks is None
    assert s.skip_migrations is True


@pytest.mark.parametrize(
    "name, value",
    [
        ("EXAMPREP_PORT", "70000"),
        ("EXAMPREP_DEBOUNCE_MS", "soon"),
        ("EXAMPREP_WATCH_POLL_MS", "0"),
        ("EXAMPREP_SKIP_MIGRATIONS", "maybe"),
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        load_settings()
