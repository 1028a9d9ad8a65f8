from __future__ import annotations

import logging
import sys
from typing import Iterable, Optional

ROOT_LOGGER = "examprep"

# Sub-loggers that EXAMPREP_LOG_LEVELS may tune independently.
COMPONENTS = ("access", "engine", "storage", "api")

_HANDLER_NAME = "examprep-stdout"

_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,  # stdlib has no TRACE
}


def configure_logging(log_level: str = "info", overrides: Iterable[tuple[str, str]] = ()) -> None:
    """
    Sends service logs to stdout.

    `log_level` applies to everything; `overrides` holds (component, level)
    pairs for the examprep sub-loggers, e.g. ("access", "debug") to follow
    the file watcher without turning on debug output for the task queue.
    Calling it again replaces the handler it installed earlier.
    """
    level = _parse_level(log_level)

    root = logging.getLogger()
    root.setLevel(level)
    for h in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    )
    root.addHandler(handler)

    logging.getLogger(ROOT_LOGGER).setLevel(level)
    for component in COMPONENTS:
        logging.getLogger(f"{ROOT_LOGGER}.{component}").setLevel(logging.NOTSET)
    for component, lvl in overrides:
        logging.getLogger(f"{ROOT_LOGGER}.{component}").setLevel(_parse_level(lvl))

    logging.getLogger("uvicorn.access").setLevel(max(level, logging.INFO))
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("asyncio").setLevel(max(level, logging.WARNING))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name if name else ROOT_LOGGER)


def parse_overrides(raw: str) -> tuple[tuple[str, str], ...]:
    """
    Parses "access=debug,engine=warning" into (component, level) pairs.

    Raises ValueError for unknown components or levels.
    """
    pairs: list[tuple[str, str]] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        component, sep, lvl = item.partition("=")
        component, lvl = component.strip().lower(), lvl.strip().lower()
        if not sep or component not in COMPONENTS:
            raise ValueError(f"unknown log component in {item!r}; expected one of {', '.join(COMPONENTS)}")
        if lvl not in _LEVELS:
            raise ValueError(f"unknown log level in {item!r}")
        pairs.append((component, lvl))
    return tuple(pairs)


def _parse_level(log_level: str) -> int:
    return _LEVELS.get(log_level.lower().strip(), logging.INFO)
