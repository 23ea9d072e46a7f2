"""State machine routes."""

from fastapi import APIRouter
from pydantic import BaseModel

from ...engine.statemachine import TRANSITIONS, Machine, transition

router = APIRouter(prefix="/state-machines", tags=["state-machines"])


class TransitionRequest(BaseModel):
    machine: Machine
    current: str
    target: str


@router.post("/transition")
async def check_transition(body: TransitionRequest):
    """Validate a transition. 409 if the graph doesn't allow it."""
    status = transition(body.machine, body.current, body.target)
    return {"machine": body.machine.value, "status": status.value}


@router.get("/{machine}")
async def describe(machine: Machine):
    """List the allowed transitions of a machine."""
    return {
        "machine": machine.value,
        "transitions": {
            current.value: sorted(t.value for t in targets)
            for current, targets in TRANSITIONS[machine].items()
        },
    }
