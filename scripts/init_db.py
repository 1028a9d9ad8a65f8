#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from examprep.config import load_settings
from examprep.logging import configure_logging, get_logger
from examprep.storage import SQLiteDB, apply_migrations


def main() -> int:
    settings = load_settings()
    configure_logging(settings.log_level)
    log = get_logger(__name__)

    if settings.skip_migrations:
        log.info("EXAMPREP_SKIP_MIGRATIONS is set; nothing to do.")
        return 0

    conn = SQLiteDB(settings.db_path).connect()
    try:
        applied = apply_migrations(conn, settings.migrations_dir)
    finally:
        conn.close()

    log.info("DB initialized at %s (%d migration(s) applied)", settings.db_path, applied)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
