"""Enrollment service: schedule position, cycles and workout sessions."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

from ..db.repositories import (
    CatalogRepository,
    ProgramStateRepository,
    WorkoutSessionRepository,
)
from ..engine.statemachine import (
    AdvanceKind,
    AdvanceResult,
    Machine,
    advance,
    quit_enrollment,
    transition,
)
from ..errors import InvalidEnrollmentState, NoActiveSession, NotEnrolled
from ..models.progress import (
    EnrollmentStatus,
    MeetState,
    RotationState,
    SessionStatus,
    UserProgramState,
    WorkoutSession,
)
from ..models.progression import TriggerContext, TriggerEvent, TriggerType
from .progression import ProgressionResult, ProgressionService

log = logging.getLogger(__name__)


@dataclass
class AdvanceOutcome:
    """A schedule advance and the progressions its events fired."""

    advance: AdvanceResult
    progressions: list[ProgressionResult] = field(default_factory=list)

    @property
    def state(self) -> UserProgramState:
        return self.advance.state

    def to_dict(self) -> dict:
        data = self.advance.to_dict()
        data["progressions"] = [r.to_dict() for r in self.progressions]
        return data


@dataclass
class SessionOutcome:
    """A finished session, its AFTER_SESSION progressions and the advance."""

    session: WorkoutSession
    progressions: list[ProgressionResult] = field(default_factory=list)
    advance: AdvanceOutcome | None = None

    def to_dict(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "progressions": [r.to_dict() for r in self.progressions],
            "advance": self.advance.to_dict() if self.advance else None,
        }


class EnrollmentService:
    """Manages a user's enrollment and workout sessions."""

    def __init__(self, db_path: Path | None = None):
        self.catalog_repo = CatalogRepository(db_path)
        self.state_repo = ProgramStateRepository(db_path)
        self.session_repo = WorkoutSessionRepository(db_path)
        self.progression = ProgressionService(db_path)

    async def enroll(
        self, user_id: str, program_id: str, meet_date: date | None = None
    ) -> UserProgramState:
        """Enroll a user in a program.

        A user who quit a previous program can enroll again.

        Raises:
            NotFound: If the program doesn't exist
            InvalidEnrollmentState: If the user has a live enrollment
        """
        catalog = await self.catalog_repo.load()
        program = catalog.get_program(program_id)

        existing = await self.state_repo.get_by_user(user_id)
        if existing is not None:
            if existing.enrollment_status != EnrollmentStatus.QUIT:
                raise InvalidEnrollmentState(
                    f"User '{user_id}' is already enrolled in '{existing.program_id}'",
                    {"user_id": user_id, "program_id": existing.program_id},
                )
            await self.state_repo.delete(existing.id)

        state = UserProgramState(
            user_id=user_id,
            program_id=program.id,
            rotation=RotationState(program.rotation_length) if program.rotation_length else None,
            meet=MeetState(meet_date) if meet_date else None,
        )
        await self.state_repo.create(state)
        log.info("Enrolled %s in %s", user_id, program.id)
        return state

    async def get_state(self, user_id: str) -> UserProgramState:
        """Get a user's enrollment.

        Raises:
            NotEnrolled: If there is none
        """
        state = await self.state_repo.get_by_user(user_id)
        if state is None:
            raise NotEnrolled(user_id)
        return state

    async def advance_state(
        self,
        user_id: str,
        kind: AdvanceKind | str = AdvanceKind.DAY,
        fire_triggers: bool = True,
        now: datetime | None = None,
    ) -> AdvanceOutcome:
        """Advance a user's schedule by a day, a week or to the next cycle.

        Week and cycle completions fire AFTER_WEEK and AFTER_CYCLE progressions
        unless ``fire_triggers`` is off.

        Raises:
            NotEnrolled: If the user isn't enrolled
            InvalidEnrollmentState: If the enrollment can't advance this way
            StaleStateError: If the state was changed concurrently
        """
        state = await self.get_state(user_id)
        catalog = await self.catalog_repo.load()
        program = catalog.get_program(state.program_id)

        result = advance(state, catalog.get_cycle(program), kind, now)
        await self.state_repo.update(state)

        outcome = AdvanceOutcome(advance=result)
        if fire_triggers:
            for event in result.events:
                outcome.progressions.extend(
                    await self.progression.fire_trigger(user_id, event, catalog=catalog)
                )
        return outcome

    async def quit(self, user_id: str) -> UserProgramState:
        """Quit the program, abandoning any open session."""
        state = await self.get_state(user_id)
        quit_enrollment(state)
        open_session = await self.session_repo.get_open(state.id)
        if open_session is not None:
            await self._close(open_session, SessionStatus.ABANDONED)
        await self.state_repo.update(state)
        log.info("User %s quit %s", user_id, state.program_id)
        return state

    async def set_meet_date(self, user_id: str, meet_date: date | None) -> UserProgramState:
        """Set or clear the meet date the program peaks towards."""
        state = await self.get_state(user_id)
        state.meet = MeetState(meet_date) if meet_date else None
        state.updated_at = datetime.now()
        await self.state_repo.update(state)
        return state

    async def start_session(self, user_id: str) -> WorkoutSession:
        """Open a workout session at the user's current position.

        Raises:
            InvalidEnrollmentState: If the enrollment isn't ACTIVE
            SessionAlreadyInProgress: If a session is already open
        """
        state = await self.get_state(user_id)
        if state.enrollment_status != EnrollmentStatus.ACTIVE:
            raise InvalidEnrollmentState(
                "Workouts can only be started while the enrollment is active",
                {"user_id": user_id, "status": state.enrollment_status.value},
            )

        session = WorkoutSession(
            user_program_state_id=state.id,
            week_number=state.current_week,
            day_index=state.day_index,
        )
        # The partial unique index rejects a second open session as well
        await self.session_repo.create(session)
        log.info("Started session %s for %s", session.id, user_id)
        return session

    async def finish_session(
        self,
        user_id: str,
        lifts_performed: list[str] | None = None,
        advance_day: bool = True,
    ) -> SessionOutcome:
        """Complete the open session, fire AFTER_SESSION and advance a day.

        The session is only marked completed once its progressions and the
        advance have gone through, so a failure leaves it open to finish
        again. The event is stamped with the session's start time, which
        makes a repeated finish a replay.

        Args:
            user_id: The user
            lifts_performed: Lifts actually trained; defaults to every lift
                prescribed for the session's day
            advance_day: Move the schedule to the next day

        Raises:
            NoActiveSession: If no session is open
        """
        state = await self.get_state(user_id)
        session = await self._open_session(state)
        transition(Machine.WORKOUT, session.status, SessionStatus.COMPLETED)

        catalog = await self.catalog_repo.load()
        program = catalog.get_program(state.program_id)
        day = catalog.get_day(program, session.week_number, session.day_index)
        if lifts_performed is None:
            lifts_performed = list(
                dict.fromkeys(
                    catalog.prescriptions[pid].lift_id for pid in day.prescription_ids
                )
            )

        event = TriggerEvent(
            type=TriggerType.AFTER_SESSION,
            timestamp=session.started_at,
            context=TriggerContext(
                session_id=session.id,
                week_number=session.week_number,
                cycle_iteration=state.current_cycle_iteration,
                day_slug=day.slug,
                lifts_performed=lifts_performed,
            ),
        )
        outcome = SessionOutcome(
            session=session,
            progressions=await self.progression.fire_trigger(user_id, event, catalog=catalog),
        )
        if advance_day:
            outcome.advance = await self.advance_state(user_id, AdvanceKind.DAY)
        await self._close(session, SessionStatus.COMPLETED)
        return outcome

    async def abandon_session(self, user_id: str) -> WorkoutSession:
        """Abandon the open session without advancing.

        Raises:
            NoActiveSession: If no session is open
        """
        state = await self.get_state(user_id)
        session = await self._open_session(state)
        await self._close(session, SessionStatus.ABANDONED)
        return session

    async def list_sessions(self, user_id: str) -> list[WorkoutSession]:
        state = await self.get_state(user_id)
        return await self.session_repo.list_for_state(state.id)

    async def _open_session(self, state: UserProgramState) -> WorkoutSession:
        session = await self.session_repo.get_open(state.id)
        if session is None:
            raise NoActiveSession(
                f"No workout in progress for '{state.user_id}'", {"user_id": state.user_id}
            )
        return session

    async def _close(self, session: WorkoutSession, status: SessionStatus) -> None:
        session.status = transition(Machine.WORKOUT, session.status, status)
        session.finished_at = datetime.now()
        await self.session_repo.update_status(session)
        log.info("Session %s %s", session.id, status.value.lower())
