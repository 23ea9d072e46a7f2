"""CLI commands for powerplan."""

from .catalog import catalog
from .enrollment import advance, check_transition, enroll, quit_program, status
from .init import init
from .maxes import maxes
from .progression import progression
from .serve import serve
from .workout import session, workout

__all__ = [
    "advance",
    "catalog",
    "check_transition",
    "enroll",
    "init",
    "maxes",
    "progression",
    "quit_program",
    "serve",
    "session",
    "status",
    "workout",
]
