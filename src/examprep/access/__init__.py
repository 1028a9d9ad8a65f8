# src/examprep/access/__init__.py
"""
Admin-managed user access.

- sync: users table <-> access file reconciliation
- watch: debounce + polling file watcher primitives
"""

from .sync import UserAccessSync, parse_access_file, render_access_file
from .watch import Debouncer, PollingFileWatcher

__all__ = [
    "Debouncer",
    "PollingFileWatcher",
    "UserAccessSync",
    "parse_access_file",
    "render_access_file",
]
