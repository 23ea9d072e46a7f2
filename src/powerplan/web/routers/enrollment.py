"""Enrollment, schedule and session routes."""

from datetime import date

from fastapi import APIRouter
from pydantic import BaseModel

from ...engine.statemachine import AdvanceKind
from ...services import EnrollmentService

router = APIRouter(prefix="/enrollment", tags=["enrollment"])


class EnrollRequest(BaseModel):
    program_id: str
    meet_date: date | None = None


class AdvanceRequest(BaseModel):
    kind: AdvanceKind = AdvanceKind.DAY
    fire_triggers: bool = True


class FinishRequest(BaseModel):
    lifts_performed: list[str] | None = None
    advance: bool = True


@router.post("/{user_id}")
async def enroll(user_id: str, body: EnrollRequest):
    """Enroll a user in a program."""
    state = await EnrollmentService().enroll(user_id, body.program_id, body.meet_date)
    return state.to_dict()


@router.get("/{user_id}")
async def get_state(user_id: str):
    """Get a user's enrollment state."""
    state = await EnrollmentService().get_state(user_id)
    return state.to_dict()


@router.post("/{user_id}/advance")
async def advance_state(user_id: str, body: AdvanceRequest | None = None):
    """Advance by a day, a week, or to the next cycle."""
    body = body or AdvanceRequest()
    outcome = await EnrollmentService().advance_state(
        user_id, body.kind, fire_triggers=body.fire_triggers
    )
    return outcome.to_dict()


@router.post("/{user_id}/quit")
async def quit_program(user_id: str):
    """Quit the program."""
    state = await EnrollmentService().quit(user_id)
    return state.to_dict()


@router.post("/{user_id}/sessions")
async def start_session(user_id: str):
    """Start a workout session. 409 if one is already open."""
    session = await EnrollmentService().start_session(user_id)
    return session.to_dict()


@router.get("/{user_id}/sessions")
async def list_sessions(user_id: str):
    sessions = await EnrollmentService().list_sessions(user_id)
    return {"sessions": [s.to_dict() for s in sessions]}


@router.post("/{user_id}/sessions/finish")
async def finish_session(user_id: str, body: FinishRequest | None = None):
    """Complete the open session."""
    body = body or FinishRequest()
    outcome = await EnrollmentService().finish_session(
        user_id, body.lifts_performed, advance_day=body.advance
    )
    return outcome.to_dict()


@router.post("/{user_id}/sessions/abandon")
async def abandon_session(user_id: str):
    """Abandon the open session."""
    session = await EnrollmentService().abandon_session(user_id)
    return session.to_dict()
