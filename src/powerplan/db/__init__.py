"""Database layer for powerplan."""

from .engine import get_db_path, init_db
from .repositories import (
    CatalogRepository,
    ProgramStateRepository,
    ProgressionRepository,
    ReferenceMaxRepository,
    WorkoutSessionRepository,
)

__all__ = [
    "CatalogRepository",
    "get_db_path",
    "init_db",
    "ProgramStateRepository",
    "ProgressionRepository",
    "ReferenceMaxRepository",
    "WorkoutSessionRepository",
]
