"""Workout resolution routes."""

from datetime import datetime

from fastapi import APIRouter

from ...services import WorkoutService

router = APIRouter(prefix="/workouts", tags=["workouts"])


@router.get("/{program_id}/users/{user_id}")
async def resolve_workout(
    program_id: str,
    user_id: str,
    week: int | None = None,
    day: int | None = None,
    as_of: datetime | None = None,
):
    """Resolve a workout; defaults to the user's current position."""
    resolution = await WorkoutService().resolve_workout(program_id, user_id, week, day, as_of)
    missing = resolution.missing_maxes()
    return {
        "workout": resolution.workout.to_dict(),
        "errors": [e.to_dict() for e in resolution.errors],
        "missing_maxes": [
            {"lift_id": e.lift_id, "kind": e.kind, "reps": e.reps} for e in missing
        ],
    }
