# src/examprep/api/app.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from examprep.access import UserAccessSync
from examprep.config import load_settings
from examprep.engine import TaskQueue
from examprep.logging import configure_logging, get_logger
from examprep.storage import Database, SQLiteDB, apply_migrations

from .routes import router

_LOG = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan handler.

    Responsible for:
    - loading settings and configuring logging
    - running DB migrations, then initializing user access sync
      (both skipped when EXAMPREP_SKIP_MIGRATIONS is set)
    - owning the background task queue
    """
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_overrides)

    sqlite_db = SQLiteDB(settings.db_path)
    access_sync = UserAccessSync(
        Database(sqlite_db),
        settings.access_file,
        debounce_s=settings.debounce_s,
        watch_poll_s=settings.watch_poll_s,
    )

    if settings.skip_migrations:
        _LOG.info("Migrations disabled; user access sync not started.")
    else:
        conn = sqlite_db.connect()
        try:
            apply_migrations(conn, settings.migrations_dir)
        finally:
            conn.close()
        await access_sync.initialize()

    queue = TaskQueue(
        max_concurrent=settings.max_concurrent_tasks,
        completed_ttl_s=settings.task_ttl_s,
    )

    # Store on app.state for DI
    app.state.settings = settings
    app.state.access_sync = access_sync
    app.state.queue = queue

    _LOG.info("Startup complete.")

    try:
        yield
    finally:
        await access_sync.stop_file_watcher()
        await queue.shutdown()
        _LOG.info("Shutdown complete.")


app = FastAPI(
    title="examprep",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)
