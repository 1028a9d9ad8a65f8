# src/examprep/api/__init__.py
"""
API layer for examprep (FastAPI).

- app: FastAPI instance + lifecycle hooks
- routes: REST + server-sent event endpoints
- deps: dependency injection helpers
- events: session invalidation event stream
"""

from .app import app

__all__ = ["app"]
