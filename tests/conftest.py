# tests/conftest.py
import importlib
import itertools
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import pytest
from fastapi.testclient import TestClient

from examprep.access import UserAccessSync
from examprep.storage import Database, SQLiteDB

from .dbutil import MIGRATIONS_DIR, make_db

_counter = itertools.count(1)

DEFAULT_ENV = {
    "EXAMPREP_MIGRATIONS_DIR": str(MIGRATIONS_DIR),
    "EXAMPREP_MAX_CONCURRENT": "2",
    "EXAMPREP_TASK_TTL_MS": "60000",
    "EXAMPREP_DEBOUNCE_MS": "50",
    "EXAMPREP_WATCH_POLL_MS": "20",
    "EXAMPREP_LOG_LEVEL": "warning",
}


def _apply_env(
    monkeypatch: pytest.MonkeyPatch,
    db_path: Path,
    access_file: Path,
    overrides: Optional[dict[str, str]] = None,
) -> None:
    monkeypatch.setenv("EXAMPREP_DB_PATH", str(db_path))
    monkeypatch.setenv("EXAMPREP_ACCESS_FILE", str(access_file))
    monkeypatch.delenv("EXAMPREP_SKIP_MIGRATIONS", raising=False)
    for k, v in DEFAULT_ENV.items():
        monkeypatch.setenv(k, v)
    if overrides:
        for k, v in overrides.items():
            monkeypatch.setenv(k, v)


@contextmanager
def _client_ctx(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    *,
    overrides: Optional[dict[str, str]] = None,
    db_path: Optional[Path] = None,
) -> Iterator[TestClient]:
    # Unique DB per client instance unless one is provided
    if db_path is None:
        db_path = tmp_path / f"examprep_{next(_counter)}.db"

    _apply_env(monkeypatch, db_path, tmp_path / "pending-users.json", overrides)

    # Import after env is set; reload to avoid cross-test state
    app_mod = importlib.import_module("examprep.api.app")
    importlib.reload(app_mod)

    with TestClient(app_mod.app) as client:
        yield client


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """
    Default integration test client with a fresh sqlite db per test.
    """
    with _client_ctx(monkeypatch, tmp_path) as c:
        yield c


@pytest.fixture()
def client_factory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """
    Factory for tests that need custom settings or a pre-populated DB.

    Usage:
      with client_factory(db_path=seeded_db_path) as client:
          ...
    """

    def _make(*, overrides: Optional[dict[str, str]] = None, db_path: Optional[Path] = None):
        return _client_ctx(monkeypatch, tmp_path, overrides=overrides, db_path=db_path)

    return _make


@pytest.fixture()
def sqlite_db(tmp_path: Path) -> SQLiteDB:
    """Migrated, empty database."""
    return make_db(tmp_path / "examprep.db")


@pytest.fixture()
def database(sqlite_db: SQLiteDB) -> Database:
    return Database(sqlite_db)


@pytest.fixture()
def access_file(tmp_path: Path) -> Path:
    return tmp_path / "pending-users.json"


@pytest.fixture()
def access_sync(database: Database, access_file: Path) -> UserAccessSync:
    return UserAccessSync(database, access_file, debounce_s=0.05, watch_poll_s=0.02)
