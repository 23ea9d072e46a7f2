"""Prescription models: load strategies and set schemes.

Both are tagged unions. The ``type`` field selects the variant and every
variant validates its payload when it is constructed, so malformed catalog
data fails when the catalog is loaded rather than at resolution time.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from ..config import DEFAULT_WORK_SET_THRESHOLD
from ..errors import UnknownVariant, ValidationError
from .lift import MaxKind, parse_max_kind


class RoundingDirection(str, Enum):
    """How a computed weight snaps to its rounding increment."""

    NEAREST = "NEAREST"  # Half-up
    DOWN = "DOWN"
    UP = "UP"


def _positive(name: str, value, context: str) -> None:
    if value is None or value <= 0:
        raise ValidationError(f"{context}: {name} must be positive", {name: value})


def _at_least_one(name: str, value, context: str) -> None:
    if value is None or int(value) != value or value < 1:
        raise ValidationError(f"{context}: {name} must be at least 1", {name: value})


# =============================================================================
# Load strategies
# =============================================================================


@dataclass(frozen=True)
class LoadStrategy:
    """Common fields for every load strategy variant."""

    type: ClassVar[str] = ""

    reference_kind: MaxKind
    reference_reps: int | None = None
    round_to: float | None = None
    rounding: RoundingDirection = RoundingDirection.NEAREST

    def __post_init__(self):
        if self.round_to is not None:
            _positive("round_to", self.round_to, self.type)
        if self.reference_kind == MaxKind.N_REP_MAX:
            _at_least_one("reference_reps", self.reference_reps, self.type)

    def _base_dict(self) -> dict:
        return {
            "type": self.type,
            "reference_kind": self.reference_kind.value,
            "reference_reps": self.reference_reps,
            "round_to": self.round_to,
            "rounding": self.rounding.value,
        }

    def to_dict(self) -> dict:
        return self._base_dict()


@dataclass(frozen=True)
class PercentOf(LoadStrategy):
    """Fixed percentage of a reference max."""

    type: ClassVar[str] = "PERCENT_OF"

    percentage: float = 100.0

    def __post_init__(self):
        super().__post_init__()
        _positive("percentage", self.percentage, self.type)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["percentage"] = self.percentage
        return data


@dataclass(frozen=True)
class WeeklyLookupLoad(LoadStrategy):
    """Percentage taken from the program's weekly lookup table."""

    type: ClassVar[str] = "WEEKLY_LOOKUP"


@dataclass(frozen=True)
class DailyLookupLoad(LoadStrategy):
    """Percentage taken from the program's daily lookup table."""

    type: ClassVar[str] = "DAILY_LOOKUP"


LOAD_STRATEGIES: dict[str, type[LoadStrategy]] = {
    cls.type: cls for cls in (PercentOf, WeeklyLookupLoad, DailyLookupLoad)
}


def parse_load_strategy(data: dict) -> LoadStrategy:
    """Parse a load strategy from its tagged dictionary form.

    Args:
        data: Dictionary with a ``type`` tag and the variant payload

    Returns:
        The validated load strategy

    Raises:
        UnknownVariant: If the tag isn't a known strategy
        ValidationError: If the payload is malformed
    """
    tag = str(data.get("type", "")).upper()
    cls = LOAD_STRATEGIES.get(tag)
    if cls is None:
        raise UnknownVariant("load strategy", data.get("type"))

    kwargs = {
        "reference_kind": parse_max_kind(data.get("reference_kind", MaxKind.TRAINING_MAX)),
        "reference_reps": data.get("reference_reps"),
        "round_to": data.get("round_to"),
        "rounding": _parse_rounding(data.get("rounding")),
    }
    if cls is PercentOf:
        if "percentage" not in data:
            raise ValidationError("PERCENT_OF requires a percentage")
        kwargs["percentage"] = float(data["percentage"])
    return cls(**kwargs)


def _parse_rounding(value) -> RoundingDirection:
    if value is None:
        return RoundingDirection.NEAREST
    try:
        return RoundingDirection(str(value).upper())
    except ValueError:
        raise ValidationError(f"Unknown rounding direction: {value!r}") from None


# =============================================================================
# Set schemes
# =============================================================================


@dataclass(frozen=True)
class SetScheme:
    """Base for set scheme variants."""

    type: ClassVar[str] = ""

    def to_dict(self) -> dict:
        return {"type": self.type}


@dataclass(frozen=True)
class FixedSets(SetScheme):
    """N identical sets; optionally the last one is AMRAP (e.g. 5x5, 3x5+)."""

    type: ClassVar[str] = "FIXED"

    sets: int = 1
    reps: int = 1
    is_amrap: bool = False

    def __post_init__(self):
        _at_least_one("sets", self.sets, self.type)
        _at_least_one("reps", self.reps, self.type)

    def to_dict(self) -> dict:
        return {"type": self.type, "sets": self.sets, "reps": self.reps, "is_amrap": self.is_amrap}


@dataclass(frozen=True)
class RampStep:
    """One step of a ramp."""

    percentage: float
    reps: int

    def __post_init__(self):
        _positive("percentage", self.percentage, "RAMP step")
        _at_least_one("reps", self.reps, "RAMP step")


@dataclass(frozen=True)
class RampSets(SetScheme):
    """Sets at increasing percentages of the top set, kept in authored order."""

    type: ClassVar[str] = "RAMP"

    steps: tuple[RampStep, ...] = field(default_factory=tuple)
    work_set_threshold: float = DEFAULT_WORK_SET_THRESHOLD

    def __post_init__(self):
        if not self.steps:
            raise ValidationError("RAMP requires at least one step")
        if not 0 <= self.work_set_threshold <= 100:
            raise ValidationError(
                "RAMP work set threshold must be between 0 and 100",
                {"work_set_threshold": self.work_set_threshold},
            )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "steps": [{"percentage": s.percentage, "reps": s.reps} for s in self.steps],
            "work_set_threshold": self.work_set_threshold,
        }


@dataclass(frozen=True)
class LookupDrivenSets(SetScheme):
    """Sets pulled from weekly lookup rows (week, 1..work_sets)."""

    type: ClassVar[str] = "LOOKUP_DRIVEN"

    work_sets: int = 1

    def __post_init__(self):
        _at_least_one("work_sets", self.work_sets, self.type)

    def to_dict(self) -> dict:
        return {"type": self.type, "work_sets": self.work_sets}


@dataclass(frozen=True)
class AmrapSets(SetScheme):
    """Every set is AMRAP with a rep floor."""

    type: ClassVar[str] = "AMRAP"

    sets: int = 1
    min_reps: int = 1

    def __post_init__(self):
        _at_least_one("sets", self.sets, self.type)
        _at_least_one("min_reps", self.min_reps, self.type)

    def to_dict(self) -> dict:
        return {"type": self.type, "sets": self.sets, "min_reps": self.min_reps}


SET_SCHEMES: dict[str, type[SetScheme]] = {
    cls.type: cls for cls in (FixedSets, RampSets, LookupDrivenSets, AmrapSets)
}


def parse_set_scheme(data: dict) -> SetScheme:
    """Parse a set scheme from its tagged dictionary form.

    Raises:
        UnknownVariant: If the tag isn't a known scheme
        ValidationError: If the payload is malformed
    """
    tag = str(data.get("type", "")).upper()
    cls = SET_SCHEMES.get(tag)
    if cls is None:
        raise UnknownVariant("set scheme", data.get("type"))

    try:
        if cls is FixedSets:
            return FixedSets(
                sets=data["sets"], reps=data["reps"], is_amrap=data.get("is_amrap", False)
            )
        if cls is RampSets:
            steps = tuple(
                RampStep(percentage=float(s["percentage"]), reps=s["reps"])
                for s in data.get("steps", [])
            )
            return RampSets(
                steps=steps,
                work_set_threshold=float(
                    data.get("work_set_threshold", DEFAULT_WORK_SET_THRESHOLD)
                ),
            )
        if cls is LookupDrivenSets:
            return LookupDrivenSets(work_sets=data.get("work_sets", 1))
        return AmrapSets(sets=data["sets"], min_reps=data["min_reps"])
    except KeyError as e:
        raise ValidationError(f"{tag} is missing field {e.args[0]!r}") from None


# =============================================================================
# Prescription
# =============================================================================


@dataclass(frozen=True)
class Prescription:
    """One exercise slot in a training day."""

    id: str
    lift_id: str
    load_strategy: LoadStrategy
    set_scheme: SetScheme
    order: int = 0
    notes: str = ""
    rest_seconds: int | None = None

    def __post_init__(self):
        if self.rest_seconds is not None and self.rest_seconds < 0:
            raise ValidationError(
                "rest_seconds cannot be negative", {"prescription_id": self.id}
            )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lift_id": self.lift_id,
            "load_strategy": self.load_strategy.to_dict(),
            "set_scheme": self.set_scheme.to_dict(),
            "order": self.order,
            "notes": self.notes,
            "rest_seconds": self.rest_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Prescription":
        return cls(
            id=data["id"],
            lift_id=data["lift_id"],
            load_strategy=parse_load_strategy(data["load_strategy"]),
            set_scheme=parse_set_scheme(data["set_scheme"]),
            order=data.get("order", 0),
            notes=data.get("notes", ""),
            rest_seconds=data.get("rest_seconds"),
        )
