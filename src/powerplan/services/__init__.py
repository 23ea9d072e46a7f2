"""Use-case services for powerplan."""

from .enrollment import AdvanceOutcome, EnrollmentService, SessionOutcome
from .progression import ProgressionResult, ProgressionService, ResultStatus
from .workouts import WorkoutService

__all__ = [
    "AdvanceOutcome",
    "EnrollmentService",
    "ProgressionResult",
    "ProgressionService",
    "ResultStatus",
    "SessionOutcome",
    "WorkoutService",
]
