"""Data models for powerplan."""

from .catalog import Catalog
from .lift import Lift, MaxKind, ReferenceMax, ReferenceMaxBook
from .lookups import DailyLookup, WeeklyLookup
from .prescription import LoadStrategy, Prescription, SetScheme
from .program import Cycle, Day, Program, ProgramProgression, Week
from .progress import (
    CycleStatus,
    EnrollmentStatus,
    SessionStatus,
    UserProgramState,
    WeekStatus,
    WorkoutSession,
)
from .progression import Progression, TriggerEvent, TriggerType

__all__ = [
    "Catalog",
    "Cycle",
    "CycleStatus",
    "DailyLookup",
    "Day",
    "EnrollmentStatus",
    "Lift",
    "LoadStrategy",
    "MaxKind",
    "Prescription",
    "Program",
    "ProgramProgression",
    "Progression",
    "ReferenceMax",
    "ReferenceMaxBook",
    "SessionStatus",
    "SetScheme",
    "TriggerEvent",
    "TriggerType",
    "UserProgramState",
    "Week",
    "WeekStatus",
    "WeeklyLookup",
    "WorkoutSession",
]
