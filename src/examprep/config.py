from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from examprep.logging import parse_overrides


def _get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an int, got: {raw!r}") from e
    return value


def _get_env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw


def _get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Environment variable {name} must be a boolean, got: {raw!r}")


@dataclass(frozen=True)
class Settings:
    # Storage
    db_path: Path
    migrations_dir: Path
    skip_migrations: bool

    # Access sync
    access_file: Path
    debounce_ms: int
    watch_poll_ms: int

    # Task queue
    max_concurrent_tasks: Optional[int]
    task_ttl_ms: int

    # Server (used by examprep.main when starting uvicorn programmatically)
    host: str
    port: int
    log_level: str
    log_overrides: tuple[tuple[str, str], ...] = ()

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def watch_poll_s(self) -> float:
        return self.watch_poll_ms / 1000.0

    @property
    def task_ttl_s(self) -> float:
        return self.task_ttl_ms / 1000.0


def load_settings() -> Settings:
    """
    Loads settings from env vars with sane defaults.

    Env vars:
      - EXAMPREP_DB_PATH (default: ./db/examprep.db)
      - EXAMPREP_MIGRATIONS_DIR (default: migrations)
      - EXAMPREP_SKIP_MIGRATIONS (default: false; also skips access sync init)
      - EXAMPREP_ACCESS_FILE (default: ./pending-users.json)
      - EXAMPREP_DEBOUNCE_MS (default: 500)
      - EXAMPREP_WATCH_POLL_MS (default: 250)
      - EXAMPREP_MAX_CONCURRENT (default: 3, 0 = unbounded)
      - EXAMPREP_TASK_TTL_MS (default: 3000)
      - EXAMPREP_HOST (default: 127.0.0.1)
      - EXAMPREP_PORT (default: 8000)
      - EXAMPREP_LOG_LEVEL (default: info)
      - EXAMPREP_LOG_LEVELS (default: none; e.g. "access=debug,engine=warning")
    """
    db_path = Path(_get_env_str("EXAMPREP_DB_PATH", "./db/examprep.db")).expanduser()
    migrations_dir = Path(_get_env_str("EXAMPREP_MIGRATIONS_DIR", "migrations")).expanduser()
    skip_migrations = _get_env_bool("EXAMPREP_SKIP_MIGRATIONS", False)

    access_file = Path(_get_env_str("EXAMPREP_ACCESS_FILE", "./pending-users.json")).expanduser()

    debounce_ms = _get_env_int("EXAMPREP_DEBOUNCE_MS", 500)
    if debounce_ms < 0:
        raise ValueError("EXAMPREP_DEBOUNCE_MS must be >= 0")

    watch_poll_ms = _get_env_int("EXAMPREP_WATCH_POLL_MS", 250)
    if watch_poll_ms <= 0:
        raise ValueError("EXAMPREP_WATCH_POLL_MS must be > 0")

    max_concurrent = _get_env_int("EXAMPREP_MAX_CONCURRENT", 3)
    if max_concurrent < 0:
        raise ValueError("EXAMPREP_MAX_CONCURRENT must be >= 0")

    task_ttl_ms = _get_env_int("EXAMPREP_TASK_TTL_MS", 3_000)
    if task_ttl_ms <= 0:
        raise ValueError("EXAMPREP_TASK_TTL_MS must be > 0")

    host = _get_env_str("EXAMPREP_HOST", "127.0.0.1")
    port = _get_env_int("EXAMPREP_PORT", 8000)
    if not (1 <= port <= 65535):
        raise ValueError("EXAMPREP_PORT must be between 1 and 65535")

    log_level = _get_env_str("EXAMPREP_LOG_LEVEL", "info").lower()
    try:
        log_overrides = parse_overrides(_get_env_str("EXAMPREP_LOG_LEVELS", ""))
    except ValueError as e:
        raise ValueError(f"Environment variable EXAMPREP_LOG_LEVELS: {e}") from e

    return Settings(
        db_path=db_path,
        migrations_dir=migrations_dir,
        skip_migrations=skip_migrations,
        access_file=access_file,
        debounce_ms=debounce_ms,
        watch_poll_ms=watch_poll_ms,
        max_concurrent_tasks=max_concurrent or None,
        task_ttl_ms=task_ttl_ms,
        host=host,
        port=port,
        log_level=log_level,
        log_overrides=log_overrides,
    )
