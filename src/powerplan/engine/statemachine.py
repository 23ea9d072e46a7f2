"""Enrollment, cycle, week and workout state machines.

Each machine is a directed graph of allowed transitions. Anything outside
the graph raises ``InvalidTransition``; nothing is clamped.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..errors import InvalidEnrollmentState, InvalidTransition, ValidationError
from ..models.progress import (
    CycleStatus,
    EnrollmentStatus,
    SessionStatus,
    UserProgramState,
    WeekStatus,
)
from ..models.program import Cycle
from ..models.progression import TriggerContext, TriggerEvent, TriggerType

log = logging.getLogger(__name__)


class Machine(str, Enum):
    """The state machines."""

    ENROLLMENT = "enrollment"
    CYCLE = "cycle"
    WEEK = "week"
    WORKOUT = "workout"


class AdvanceKind(str, Enum):
    """How far to move a schedule position."""

    DAY = "day"
    WEEK = "week"
    CYCLE = "cycle"


TRANSITIONS: dict[Machine, dict[Enum, frozenset]] = {
    Machine.ENROLLMENT: {
        EnrollmentStatus.ACTIVE: frozenset(
            {EnrollmentStatus.BETWEEN_CYCLES, EnrollmentStatus.QUIT}
        ),
        EnrollmentStatus.BETWEEN_CYCLES: frozenset(
            {EnrollmentStatus.ACTIVE, EnrollmentStatus.QUIT}
        ),
        EnrollmentStatus.QUIT: frozenset(),
    },
    Machine.CYCLE: {
        CycleStatus.PENDING: frozenset({CycleStatus.IN_PROGRESS}),
        CycleStatus.IN_PROGRESS: frozenset({CycleStatus.COMPLETED}),
        CycleStatus.COMPLETED: frozenset({CycleStatus.PENDING}),
    },
    Machine.WEEK: {
        WeekStatus.PENDING: frozenset({WeekStatus.IN_PROGRESS}),
        WeekStatus.IN_PROGRESS: frozenset({WeekStatus.COMPLETED}),
        WeekStatus.COMPLETED: frozenset({WeekStatus.PENDING}),
    },
    Machine.WORKOUT: {
        SessionStatus.IN_PROGRESS: frozenset(
            {SessionStatus.COMPLETED, SessionStatus.ABANDONED}
        ),
        SessionStatus.COMPLETED: frozenset(),
        SessionStatus.ABANDONED: frozenset(),
    },
}

_STATUS_TYPES = {
    Machine.ENROLLMENT: EnrollmentStatus,
    Machine.CYCLE: CycleStatus,
    Machine.WEEK: WeekStatus,
    Machine.WORKOUT: SessionStatus,
}


def parse_status(machine: Machine | str, value: str | Enum) -> Enum:
    """Parse a status name for a machine."""
    machine = Machine(machine)
    try:
        return _STATUS_TYPES[machine](value)
    except ValueError:
        raise ValidationError(
            f"Unknown {machine.value} status: {value!r}",
            {"machine": machine.value, "status": str(value)},
        ) from None


def can_transition(machine: Machine | str, current, target) -> bool:
    machine = Machine(machine)
    current, target = parse_status(machine, current), parse_status(machine, target)
    return target in TRANSITIONS[machine][current]


def transition(machine: Machine | str, current, target):
    """Move a machine from one status to another.

    Args:
        machine: Which state machine
        current: Current status (enum or its value)
        target: Desired status (enum or its value)

    Returns:
        The target status

    Raises:
        InvalidTransition: If the graph has no edge from current to target
    """
    machine = Machine(machine)
    current, target = parse_status(machine, current), parse_status(machine, target)
    if target not in TRANSITIONS[machine][current]:
        raise InvalidTransition(machine.value, current.value, target.value)
    return target


@dataclass
class AdvanceResult:
    """Outcome of a schedule advance."""

    state: UserProgramState
    week_completed: bool = False
    cycle_completed: bool = False
    events: list[TriggerEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "state": self.state.to_dict(),
            "week_completed": self.week_completed,
            "cycle_completed": self.cycle_completed,
            "events": [e.to_dict() for e in self.events],
        }


def _start_week(state: UserProgramState) -> None:
    if state.cycle_status == CycleStatus.PENDING:
        state.cycle_status = transition(Machine.CYCLE, state.cycle_status, CycleStatus.IN_PROGRESS)
    if state.week_status == WeekStatus.PENDING:
        state.week_status = transition(Machine.WEEK, state.week_status, WeekStatus.IN_PROGRESS)


def _complete_week(
    state: UserProgramState, cycle: Cycle, result: AdvanceResult, now: datetime
) -> None:
    _start_week(state)
    state.week_status = transition(Machine.WEEK, state.week_status, WeekStatus.COMPLETED)
    result.week_completed = True
    result.events.append(
        TriggerEvent(
            type=TriggerType.AFTER_WEEK,
            timestamp=now,
            context=TriggerContext(
                week_number=state.current_week,
                cycle_iteration=state.current_cycle_iteration,
            ),
        )
    )
    if state.rotation is not None:
        state.rotation.advance()

    if state.current_week < cycle.length:
        state.current_week += 1
        state.current_day_index = None
        state.week_status = transition(Machine.WEEK, state.week_status, WeekStatus.PENDING)
        return

    # Last week of the cycle
    state.cycle_status = transition(Machine.CYCLE, state.cycle_status, CycleStatus.COMPLETED)
    state.enrollment_status = transition(
        Machine.ENROLLMENT, state.enrollment_status, EnrollmentStatus.BETWEEN_CYCLES
    )
    result.cycle_completed = True
    result.events.append(
        TriggerEvent(
            type=TriggerType.AFTER_CYCLE,
            timestamp=now,
            context=TriggerContext(
                week_number=state.current_week,
                cycle_iteration=state.current_cycle_iteration,
            ),
        )
    )
    log.info(
        "User %s completed cycle %d of %s",
        state.user_id, state.current_cycle_iteration, state.program_id,
    )


def _start_next_cycle(state: UserProgramState) -> None:
    state.enrollment_status = transition(
        Machine.ENROLLMENT, state.enrollment_status, EnrollmentStatus.ACTIVE
    )
    state.cycle_status = transition(Machine.CYCLE, state.cycle_status, CycleStatus.PENDING)
    if state.week_status == WeekStatus.COMPLETED:
        state.week_status = transition(Machine.WEEK, state.week_status, WeekStatus.PENDING)
    state.current_cycle_iteration += 1
    state.cycles_since_start += 1
    state.current_week = 1
    state.current_day_index = None


def advance(
    state: UserProgramState,
    cycle: Cycle,
    kind: AdvanceKind | str,
    now: datetime | None = None,
) -> AdvanceResult:
    """Advance a user's schedule position.

    A day advance past the last day of the week completes the week; completing
    the last week of the cycle completes the cycle and moves the enrollment to
    BETWEEN_CYCLES. A cycle advance starts the next cycle from BETWEEN_CYCLES.

    Args:
        state: The user's program state; mutated in place
        cycle: The program's cycle
        kind: day, week or cycle
        now: Timestamp for emitted trigger events

    Returns:
        The advanced state, completion flags and AFTER_WEEK/AFTER_CYCLE events

    Raises:
        InvalidEnrollmentState: If the enrollment can't advance this way
        InvalidTransition: If a sub-machine is in an inconsistent status
    """
    kind = AdvanceKind(kind)
    now = now or datetime.now()
    result = AdvanceResult(state=state)

    if state.enrollment_status == EnrollmentStatus.QUIT:
        raise InvalidEnrollmentState(
            "Enrollment has been quit", {"user_id": state.user_id}
        )

    if kind == AdvanceKind.CYCLE:
        if state.enrollment_status != EnrollmentStatus.BETWEEN_CYCLES:
            raise InvalidEnrollmentState(
                "The next cycle can only start between cycles",
                {"user_id": state.user_id, "status": state.enrollment_status.value},
            )
        _start_next_cycle(state)
    else:
        if state.enrollment_status != EnrollmentStatus.ACTIVE:
            raise InvalidEnrollmentState(
                "Enrollment is between cycles; start the next cycle first",
                {"user_id": state.user_id, "status": state.enrollment_status.value},
            )
        if kind == AdvanceKind.WEEK:
            _complete_week(state, cycle, result, now)
        else:
            _start_week(state)
            days = cycle.get_week(state.current_week).days_count
            next_index = state.day_index + 1
            if next_index >= days:
                _complete_week(state, cycle, result, now)
            else:
                state.current_day_index = next_index

    state.updated_at = now
    log.debug("Advanced %s by %s: %s", state.user_id, kind.value, state.get_position_display())
    return result


def quit_enrollment(state: UserProgramState) -> UserProgramState:
    """Move an enrollment to QUIT."""
    state.enrollment_status = transition(
        Machine.ENROLLMENT, state.enrollment_status, EnrollmentStatus.QUIT
    )
    state.updated_at = datetime.now()
    return state
