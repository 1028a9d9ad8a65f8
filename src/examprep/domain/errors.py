# src/examprep/domain/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ExamPrepError(Exception):
    """
    Base domain error.

    The API layer maps these to HTTP responses consistently.
    """
    message: str
    code: str = "EXAMPREP_ERROR"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationError(ExamPrepError):
    code: str = "VALIDATION_ERROR"


@dataclass
class NotFoundError(ExamPrepError):
    code: str = "NOT_FOUND"


@dataclass
class ConflictError(ExamPrepError):
    code: str = "CONFLICT"


@dataclass
class DependencyError(ExamPrepError):
    code: str = "DEPENDENCY_ERROR"
