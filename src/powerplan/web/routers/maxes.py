"""Reference max routes."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from ...db import CatalogRepository, ReferenceMaxRepository
from ...models.lift import MaxKind, ReferenceMax

router = APIRouter(prefix="/maxes", tags=["maxes"])


class MaxRequest(BaseModel):
    lift_id: str
    kind: MaxKind = MaxKind.TRAINING_MAX
    value: float
    reps: int | None = None
    effective_date: datetime | None = None


@router.post("/{user_id}")
async def record_max(user_id: str, body: MaxRequest):
    """Append a reference max."""
    catalog = await CatalogRepository().load()
    lift = catalog.get_lift(body.lift_id)
    lift.require_own_max()
    reference_max = ReferenceMax(
        user_id=user_id,
        lift_id=lift.id,
        kind=body.kind,
        value=body.value,
        reps=body.reps,
        effective_date=body.effective_date or datetime.now(),
    )
    await ReferenceMaxRepository().add(reference_max)
    return {"id": reference_max.id, **reference_max.to_dict()}


@router.get("/{user_id}")
async def list_maxes(user_id: str, as_of: datetime | None = None):
    """List a user's max history, oldest first."""
    rows = await ReferenceMaxRepository().list_for_user(user_id, as_of)
    return {"maxes": [{"id": row.id, **row.to_dict()} for row in rows]}
