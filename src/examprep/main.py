from __future__ import annotations

from examprep.config import load_settings
from examprep.logging import configure_logging, get_logger


def main() -> int:
    """
    Programmatic entrypoint.

    Dev command:
      uvicorn examprep.api.app:app --reload

    or:
      python -m examprep.main
    """
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_overrides)
    log = get_logger(__name__)

    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    log.info("Starting examprep with DB %s and access file %s", settings.db_path, settings.access_file)

    # Import here so config/logging are set before app import side-effects.
    try:
        from examprep.api.app import app  # noqa: F401
    except Exception:
        log.exception("Failed to import FastAPI app (examprep.api.app:app).")
        return 1

    import uvicorn

    uvicorn.run(
        "examprep.api.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=False,  # prefer `uvicorn ... --reload` in dev
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
