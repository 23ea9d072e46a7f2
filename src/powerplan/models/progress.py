"""Enrollment and workout session tracking models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from .timestamps import to_local_naive


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle status."""

    ACTIVE = "ACTIVE"
    BETWEEN_CYCLES = "BETWEEN_CYCLES"
    QUIT = "QUIT"


class CycleStatus(str, Enum):
    """Status of the current cycle iteration."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class WeekStatus(str, Enum):
    """Status of the current week."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class SessionStatus(str, Enum):
    """Workout session status."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


@dataclass
class RotationState:
    """Position in a lift rotation that advances once per completed week."""

    length: int
    position: int = 0

    def advance(self) -> None:
        self.position = (self.position + 1) % self.length

    def to_dict(self) -> dict:
        return {"length": self.length, "position": self.position}

    @classmethod
    def from_dict(cls, data: dict) -> "RotationState":
        return cls(length=data["length"], position=data.get("position", 0))


@dataclass
class MeetState:
    """Competition date the program is peaking towards."""

    meet_date: date

    def days_out(self, today: date | None = None) -> int:
        """Days remaining until the meet (negative once it has passed)."""
        today = today or date.today()
        return (self.meet_date - today).days

    def weeks_out(self, today: date | None = None) -> int:
        return self.days_out(today) // 7

    def to_dict(self) -> dict:
        return {"meet_date": self.meet_date.isoformat()}

    @classmethod
    def from_dict(cls, data: dict) -> "MeetState":
        return cls(meet_date=date.fromisoformat(data["meet_date"]))


@dataclass
class UserProgramState:
    """A user's enrollment in a program and their position in it.

    The whole record is written as one unit; ``version`` increases on every
    write so concurrent updates can be detected.
    """

    user_id: str
    program_id: str
    current_week: int = 1
    current_cycle_iteration: int = 1
    current_day_index: int | None = None
    cycles_since_start: int = 0
    enrollment_status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    cycle_status: CycleStatus = CycleStatus.PENDING
    week_status: WeekStatus = WeekStatus.PENDING
    rotation: RotationState | None = None
    meet: MeetState | None = None
    version: int = 0
    enrolled_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    id: int | None = None

    @property
    def day_index(self) -> int:
        """Current day index, counting a fresh enrollment as day 0."""
        return self.current_day_index or 0

    def get_position_display(self) -> str:
        """Get a human-readable position string."""
        return (
            f"Cycle {self.current_cycle_iteration}, Week {self.current_week}, "
            f"Day {self.day_index + 1}"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "user_id": self.user_id,
            "program_id": self.program_id,
            "current_week": self.current_week,
            "current_cycle_iteration": self.current_cycle_iteration,
            "current_day_index": self.current_day_index,
            "cycles_since_start": self.cycles_since_start,
            "enrollment_status": self.enrollment_status.value,
            "cycle_status": self.cycle_status.value,
            "week_status": self.week_status.value,
            "rotation": self.rotation.to_dict() if self.rotation else None,
            "meet": self.meet.to_dict() if self.meet else None,
            "version": self.version,
            "enrolled_at": self.enrolled_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict, id: int | None = None) -> "UserProgramState":
        """Create from dictionary."""
        enrolled_at = data.get("enrolled_at")
        updated_at = data.get("updated_at")
        return cls(
            id=id,
            user_id=data["user_id"],
            program_id=data["program_id"],
            current_week=data.get("current_week", 1),
            current_cycle_iteration=data.get("current_cycle_iteration", 1),
            current_day_index=data.get("current_day_index"),
            cycles_since_start=data.get("cycles_since_start", 0),
            enrollment_status=EnrollmentStatus(data.get("enrollment_status", "ACTIVE")),
            cycle_status=CycleStatus(data.get("cycle_status", "PENDING")),
            week_status=WeekStatus(data.get("week_status", "PENDING")),
            rotation=RotationState.from_dict(data["rotation"]) if data.get("rotation") else None,
            meet=MeetState.from_dict(data["meet"]) if data.get("meet") else None,
            version=data.get("version", 0),
            enrolled_at=datetime.fromisoformat(enrolled_at) if enrolled_at else datetime.now(),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else datetime.now(),
        )


@dataclass
class WorkoutSession:
    """One attempted workout."""

    user_program_state_id: int
    week_number: int
    day_index: int
    status: SessionStatus = SessionStatus.IN_PROGRESS
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None
    id: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_program_state_id": self.user_program_state_id,
            "week_number": self.week_number,
            "day_index": self.day_index,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class LoggedSet:
    """A set as actually performed."""

    user_id: str
    lift_id: str
    weight: float
    target_reps: int
    reps_performed: int
    set_number: int = 1
    is_amrap: bool = False
    session_id: int | None = None
    logged_at: datetime = field(default_factory=datetime.now)
    id: int | None = None

    def __post_init__(self):
        self.logged_at = to_local_naive(self.logged_at)

    @property
    def succeeded(self) -> bool:
        return self.reps_performed >= self.target_reps

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "lift_id": self.lift_id,
            "session_id": self.session_id,
            "set_number": self.set_number,
            "weight": self.weight,
            "target_reps": self.target_reps,
            "reps_performed": self.reps_performed,
            "is_amrap": self.is_amrap,
            "logged_at": self.logged_at.isoformat(),
        }
