"""Progression routes."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ...models.progression import TriggerContext, TriggerEvent, TriggerType
from ...services import ProgressionService

router = APIRouter(prefix="/progressions", tags=["progressions"])


class TriggerRequest(BaseModel):
    """Body for triggering a single progression."""

    user_id: str
    lift_id: str
    trigger_type: TriggerType
    timestamp: datetime | None = None
    context: dict = Field(default_factory=dict)
    increment_override: float | None = None
    force: bool = False


class LoggedSetRequest(BaseModel):
    """Body for logging a performed set."""

    user_id: str
    lift_id: str
    weight: float
    target_reps: int
    reps_performed: int
    is_amrap: bool = False
    set_number: int = 1
    session_id: int | None = None
    prescription_id: str | None = None


@router.post("/{progression_id}/trigger")
async def trigger_progression(progression_id: str, body: TriggerRequest):
    """Apply one progression to one lift.

    Replays report status=skipped unless ``force`` is set.
    """
    event = TriggerEvent(
        type=body.trigger_type,
        timestamp=body.timestamp or datetime.now(),
        context=TriggerContext.from_dict(body.context),
    )
    result = await ProgressionService().trigger_progression(
        body.user_id,
        progression_id,
        body.lift_id,
        event,
        increment_override=body.increment_override,
        force=body.force,
    )
    return result.to_dict()


@router.post("/sets")
async def log_set(body: LoggedSetRequest):
    """Record a performed set and run failure-aware progressions."""
    outcome = await ProgressionService().record_set(
        body.user_id,
        body.lift_id,
        body.weight,
        body.target_reps,
        body.reps_performed,
        is_amrap=body.is_amrap,
        set_number=body.set_number,
        session_id=body.session_id,
        prescription_id=body.prescription_id,
    )
    return {
        "set": outcome.logged_set.to_dict(),
        "estimated_one_rm": outcome.estimated_one_rm,
        "progressions": [r.to_dict() for r in outcome.results],
    }


@router.get("/users/{user_id}/history")
async def progression_history(user_id: str, lift_id: str | None = None):
    """List applied progressions, newest first."""
    logs = await ProgressionService().history(user_id, lift_id)
    return {"logs": [entry.to_dict() for entry in logs]}
