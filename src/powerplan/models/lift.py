"""Lift and reference max models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..errors import ValidationError
from .timestamps import parse_timestamp, to_local_naive


class MaxKind(str, Enum):
    """Kinds of reference max a load can be computed from."""

    ONE_RM = "ONE_RM"
    TRAINING_MAX = "TRAINING_MAX"
    N_REP_MAX = "N_REP_MAX"  # Parametrised by reps
    ESTIMATED_1RM = "ESTIMATED_1RM"


def parse_max_kind(value: str | MaxKind) -> MaxKind:
    """Parse a max kind, rejecting unknown values."""
    try:
        return MaxKind(value)
    except ValueError:
        raise ValidationError(f"Unknown max kind: {value!r}", {"kind": value}) from None


def estimate_one_rm(weight: float, reps: int) -> float:
    """Estimate a 1RM from a rep set using the Epley formula."""
    if reps <= 0:
        raise ValidationError("Reps must be at least 1 to estimate a 1RM")
    if reps == 1:
        return weight
    return weight * (1 + reps / 30)


@dataclass
class Lift:
    """A named movement, optionally a variation of a parent lift.

    A variation either carries its own reference maxes or derives them from
    the parent as ``parent max * parent_max_percentage / 100``.
    """

    id: str
    name: str
    slug: str = ""
    is_competition_lift: bool = False
    parent_lift_id: str | None = None
    derives_max_from_parent: bool = False
    parent_max_percentage: float = 100.0

    def __post_init__(self):
        if not self.slug:
            self.slug = self.id
        if self.parent_lift_id == self.id:
            raise ValidationError(
                f"Lift '{self.id}' cannot be its own parent", {"lift_id": self.id}
            )
        if self.derives_max_from_parent and not self.parent_lift_id:
            raise ValidationError(
                f"Lift '{self.id}' derives its max from a parent but has none",
                {"lift_id": self.id},
            )
        if not 0 < self.parent_max_percentage <= 100:
            raise ValidationError(
                "Parent max percentage must be between 0 and 100",
                {"lift_id": self.id, "percentage": self.parent_max_percentage},
            )

    def require_own_max(self) -> None:
        """Raise ValidationError if this lift's max is derived from its parent."""
        if self.derives_max_from_parent:
            raise ValidationError(
                f"{self.name} uses {self.parent_max_percentage:g}% of "
                f"'{self.parent_lift_id}'; record the parent's max instead",
                {"lift_id": self.id, "parent_lift_id": self.parent_lift_id},
            )

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_competition_lift": self.is_competition_lift,
            "parent_lift_id": self.parent_lift_id,
            "derives_max_from_parent": self.derives_max_from_parent,
            "parent_max_percentage": self.parent_max_percentage,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Lift":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            slug=data.get("slug", ""),
            is_competition_lift=data.get("is_competition_lift", False),
            parent_lift_id=data.get("parent_lift_id"),
            derives_max_from_parent=data.get("derives_max_from_parent", False),
            parent_max_percentage=float(data.get("parent_max_percentage", 100.0)),
        )


@dataclass
class ReferenceMax:
    """A single recorded max. History is append-only."""

    user_id: str
    lift_id: str
    kind: MaxKind
    value: float
    effective_date: datetime = field(default_factory=datetime.now)
    reps: int | None = None
    id: int | None = None

    def __post_init__(self):
        self.effective_date = to_local_naive(self.effective_date)
        if self.value <= 0:
            raise ValidationError(
                "Reference max value must be positive",
                {"lift_id": self.lift_id, "value": self.value},
            )
        if self.kind == MaxKind.N_REP_MAX and not self.reps:
            raise ValidationError(
                "N_REP_MAX requires a rep count", {"lift_id": self.lift_id}
            )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "lift_id": self.lift_id,
            "kind": self.kind.value,
            "value": self.value,
            "effective_date": self.effective_date.isoformat(),
            "reps": self.reps,
        }

    @classmethod
    def from_dict(cls, data: dict, id: int | None = None) -> "ReferenceMax":
        """Create from dictionary."""
        effective_date = parse_timestamp(data.get("effective_date"))
        return cls(
            id=id,
            user_id=data["user_id"],
            lift_id=data["lift_id"],
            kind=parse_max_kind(data["kind"]),
            value=float(data["value"]),
            effective_date=effective_date or datetime.now(),
            reps=data.get("reps"),
        )


class ReferenceMaxBook:
    """Read-only view over a user's max history.

    The current value for a (lift, kind, reps) key is the row with the latest
    effective date; rows recorded later win ties.
    """

    def __init__(self, maxes: list[ReferenceMax], lifts: dict[str, Lift] | None = None):
        self._lifts = lifts or {}
        self._latest: dict[tuple, tuple[datetime, int, ReferenceMax]] = {}
        for seq, row in enumerate(maxes):
            self._remember(row, seq)
        self._rows = list(maxes)

    def _remember(self, row: ReferenceMax, seq: int) -> None:
        key = (row.lift_id, row.kind, row.reps if row.kind == MaxKind.N_REP_MAX else None)
        order = (row.effective_date, row.id if row.id is not None else seq)
        held = self._latest.get(key)
        if held is None or order >= (held[0], held[1]):
            self._latest[key] = (order[0], order[1], row)

    def add(self, row: ReferenceMax) -> None:
        """Append a row to the book."""
        self._rows.append(row)
        self._remember(row, len(self._rows))

    def current(
        self, lift_id: str, kind: MaxKind, reps: int | None = None
    ) -> float | None:
        """Get the current max value, following parent derivation."""
        return self._current(lift_id, kind, reps, seen=set())

    def _current(
        self, lift_id: str, kind: MaxKind, reps: int | None, seen: set[str]
    ) -> float | None:
        if lift_id in seen:
            raise ValidationError(
                "Lift parent chain contains a cycle", {"lift_id": lift_id}
            )
        seen.add(lift_id)

        lift = self._lifts.get(lift_id)
        if lift is not None and lift.derives_max_from_parent:
            parent_value = self._current(lift.parent_lift_id, kind, reps, seen)
            if parent_value is None:
                return None
            return parent_value * lift.parent_max_percentage / 100

        key = (lift_id, kind, reps if kind == MaxKind.N_REP_MAX else None)
        held = self._latest.get(key)
        return held[2].value if held else None

    def as_of(self, when: datetime) -> "ReferenceMaxBook":
        """Get a book restricted to rows effective on or before a date."""
        when = to_local_naive(when)
        return ReferenceMaxBook(
            [row for row in self._rows if row.effective_date <= when], self._lifts
        )

    def history(self, lift_id: str, kind: MaxKind | None = None) -> list[ReferenceMax]:
        """Get all rows for a lift, oldest first."""
        rows = [
            row
            for row in self._rows
            if row.lift_id == lift_id and (kind is None or row.kind == kind)
        ]
        return sorted(rows, key=lambda r: r.effective_date)
