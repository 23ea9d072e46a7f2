"""Progression rule definitions and per-user progression records."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from ..errors import UnknownVariant, ValidationError
from .lift import MaxKind, parse_max_kind
from .timestamps import parse_timestamp, to_local_naive


class ProgressionType(str, Enum):
    """Progression rule types."""

    LINEAR = "LINEAR"
    DOUBLE = "DOUBLE"
    CYCLE = "CYCLE"
    AMRAP_GUIDED = "AMRAP_GUIDED"
    STAGE = "STAGE"
    DELOAD_ON_FAILURE = "DELOAD_ON_FAILURE"


class TriggerType(str, Enum):
    """Events a progression rule can listen for."""

    AFTER_SESSION = "AFTER_SESSION"
    AFTER_WEEK = "AFTER_WEEK"
    AFTER_CYCLE = "AFTER_CYCLE"
    AFTER_SET = "AFTER_SET"
    ON_FAILURE = "ON_FAILURE"


class ProgressionAction(str, Enum):
    """What an applied progression did."""

    INCREMENT = "INCREMENT"
    STAGE_ADVANCE = "STAGE_ADVANCE"
    FAILURE_RECORDED = "FAILURE_RECORDED"
    DELOAD = "DELOAD"
    COUNTER_RESET = "COUNTER_RESET"
    RETEST_1RM = "RETEST_1RM"
    RESET_WEIGHT = "RESET_WEIGHT"


class FinalFailureAction(str, Enum):
    """What a STAGE rule does when its last stage fails."""

    RETEST_1RM = "RETEST_1RM"
    RESET_WEIGHT = "RESET_WEIGHT"


class DeloadType(str, Enum):
    """How a DELOAD_ON_FAILURE rule reduces the max."""

    PERCENT = "percent"
    FIXED = "fixed"


def _parse_enum(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {what}: {value!r}", {what: value}) from None


# =============================================================================
# Trigger events
# =============================================================================


@dataclass
class TriggerContext:
    """Context carried by a trigger event. Only the relevant fields are set."""

    session_id: int | None = None
    prescription_id: str | None = None
    week_number: int | None = None
    cycle_iteration: int | None = None
    day_slug: str | None = None
    lifts_performed: list[str] = field(default_factory=list)
    amrap_reps: int | None = None
    target_reps: int | None = None
    reps_performed: int | None = None
    weight: float | None = None
    succeeded: bool | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary, dropping unset fields."""
        data = {
            "session_id": self.session_id,
            "prescription_id": self.prescription_id,
            "week_number": self.week_number,
            "cycle_iteration": self.cycle_iteration,
            "day_slug": self.day_slug,
            "lifts_performed": list(self.lifts_performed),
            "amrap_reps": self.amrap_reps,
            "target_reps": self.target_reps,
            "reps_performed": self.reps_performed,
            "weight": self.weight,
            "succeeded": self.succeeded,
        }
        return {k: v for k, v in data.items() if v is not None and v != []}

    @classmethod
    def from_dict(cls, data: dict | None) -> "TriggerContext":
        data = data or {}
        return cls(
            session_id=data.get("session_id"),
            prescription_id=data.get("prescription_id"),
            week_number=data.get("week_number"),
            cycle_iteration=data.get("cycle_iteration"),
            day_slug=data.get("day_slug"),
            lifts_performed=list(data.get("lifts_performed", [])),
            amrap_reps=data.get("amrap_reps"),
            target_reps=data.get("target_reps"),
            reps_performed=data.get("reps_performed"),
            weight=data.get("weight"),
            succeeded=data.get("succeeded"),
        )


@dataclass
class TriggerEvent:
    """An event that may cause progression rules to fire.

    The timestamp is part of the idempotency key: replaying an event with
    the same timestamp is a duplicate.
    """

    type: TriggerType
    timestamp: datetime = field(default_factory=datetime.now)
    context: TriggerContext = field(default_factory=TriggerContext)

    def __post_init__(self):
        self.timestamp = to_local_naive(self.timestamp)

    @property
    def is_success(self) -> bool:
        """Whether this event reports a successful set or session."""
        if self.type == TriggerType.ON_FAILURE:
            return False
        if self.context.succeeded is not None:
            return self.context.succeeded
        reps, target = self.context.reps_performed, self.context.target_reps
        if reps is not None and target is not None:
            return reps >= target
        return False

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TriggerEvent":
        timestamp = parse_timestamp(data.get("timestamp"))
        return cls(
            type=_parse_enum(TriggerType, str(data["type"]).upper(), "trigger_type"),
            timestamp=timestamp or datetime.now(),
            context=TriggerContext.from_dict(data.get("context")),
        )


# =============================================================================
# Rules
# =============================================================================


@dataclass(frozen=True)
class Progression(ABC):
    """Common fields for progression rules."""

    type: ClassVar[ProgressionType]

    id: str
    name: str = ""
    max_kind: MaxKind = MaxKind.TRAINING_MAX

    @property
    @abstractmethod
    def triggers(self) -> frozenset[TriggerType]:
        """Trigger types this rule reacts to."""

    def params(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "max_kind": self.max_kind.value,
            "params": self.params(),
        }


@dataclass(frozen=True)
class LinearProgression(Progression):
    """Add a fixed increment after every session or week."""

    type: ClassVar[ProgressionType] = ProgressionType.LINEAR

    increment: float = 5.0
    trigger: TriggerType = TriggerType.AFTER_SESSION

    def __post_init__(self):
        if self.trigger not in (TriggerType.AFTER_SESSION, TriggerType.AFTER_WEEK):
            raise ValidationError(
                "LINEAR progressions trigger AFTER_SESSION or AFTER_WEEK",
                {"progression_id": self.id, "trigger": self.trigger.value},
            )

    @property
    def triggers(self) -> frozenset[TriggerType]:
        return frozenset({self.trigger})

    def params(self) -> dict:
        return {"increment": self.increment, "trigger": self.trigger.value}


@dataclass(frozen=True)
class DoubleProgression(Progression):
    """Build reps at a fixed weight; add weight once a set reaches the rep ceiling."""

    type: ClassVar[ProgressionType] = ProgressionType.DOUBLE

    weight_increment: float = 5.0
    rep_ceiling: int = 12

    def __post_init__(self):
        if self.weight_increment <= 0:
            raise ValidationError(
                "DOUBLE weight_increment must be positive", {"progression_id": self.id}
            )
        if self.rep_ceiling < 1:
            raise ValidationError(
                "DOUBLE rep_ceiling must be at least 1", {"progression_id": self.id}
            )

    @property
    def triggers(self) -> frozenset[TriggerType]:
        return frozenset({TriggerType.AFTER_SET})

    def params(self) -> dict:
        return {"weight_increment": self.weight_increment, "rep_ceiling": self.rep_ceiling}


@dataclass(frozen=True)
class CycleProgression(Progression):
    """Add a fixed increment at the end of every cycle."""

    type: ClassVar[ProgressionType] = ProgressionType.CYCLE

    increment: float = 5.0

    @property
    def triggers(self) -> frozenset[TriggerType]:
        return frozenset({TriggerType.AFTER_CYCLE})

    def params(self) -> dict:
        return {"increment": self.increment}


@dataclass(frozen=True)
class AmrapBucket:
    """Inclusive rep range mapped to an increment."""

    min_reps: int
    max_reps: int
    increment: float

    def contains(self, reps: int) -> bool:
        return self.min_reps <= reps <= self.max_reps


@dataclass(frozen=True)
class AmrapGuidedProgression(Progression):
    """Pick the increment from the rep range an AMRAP set landed in."""

    type: ClassVar[ProgressionType] = ProgressionType.AMRAP_GUIDED

    buckets: tuple[AmrapBucket, ...] = ()
    trigger: TriggerType = TriggerType.AFTER_CYCLE

    def __post_init__(self):
        if not self.buckets:
            raise ValidationError(
                "AMRAP_GUIDED requires at least one bucket", {"progression_id": self.id}
            )
        if self.trigger not in (
            TriggerType.AFTER_CYCLE, TriggerType.AFTER_SESSION, TriggerType.AFTER_SET
        ):
            raise ValidationError(
                "AMRAP_GUIDED triggers AFTER_CYCLE, AFTER_SESSION or AFTER_SET",
                {"progression_id": self.id, "trigger": self.trigger.value},
            )
        previous = None
        for bucket in self.buckets:
            if bucket.min_reps > bucket.max_reps:
                raise ValidationError(
                    "AMRAP bucket min_reps exceeds max_reps",
                    {"progression_id": self.id, "bucket": [bucket.min_reps, bucket.max_reps]},
                )
            if previous is not None and bucket.min_reps <= previous.max_reps:
                raise ValidationError(
                    "AMRAP buckets must be ordered and non-overlapping",
                    {"progression_id": self.id},
                )
            previous = bucket

    @property
    def triggers(self) -> frozenset[TriggerType]:
        return frozenset({self.trigger})

    def bucket_for(self, reps: int) -> AmrapBucket | None:
        """Find the bucket for a rep count; above the top range uses the top bucket."""
        for bucket in self.buckets:
            if bucket.contains(reps):
                return bucket
        if reps > self.buckets[-1].max_reps:
            return self.buckets[-1]
        return None

    def params(self) -> dict:
        return {
            "trigger": self.trigger.value,
            "buckets": [
                {"min_reps": b.min_reps, "max_reps": b.max_reps, "increment": b.increment}
                for b in self.buckets
            ],
        }


@dataclass(frozen=True)
class Stage:
    """One rep scheme in a STAGE progression (e.g. 5x3+)."""

    name: str
    sets: int
    reps: int
    is_amrap: bool = False
    min_volume: int | None = None

    def __post_init__(self):
        if self.sets < 1 or self.reps < 1:
            raise ValidationError(
                f"Stage '{self.name}' needs at least one set and one rep",
                {"stage": self.name},
            )


@dataclass(frozen=True)
class StageProgression(Progression):
    """Move through rep schemes on failure, then retest or reset."""

    type: ClassVar[ProgressionType] = ProgressionType.STAGE

    stages: tuple[Stage, ...] = ()
    on_final_failure: FinalFailureAction = FinalFailureAction.RESET_WEIGHT
    reset_percentage: float = 100.0

    def __post_init__(self):
        if len(self.stages) < 2:
            raise ValidationError(
                "STAGE progressions need at least two stages", {"progression_id": self.id}
            )
        if not 0 < self.reset_percentage <= 100:
            raise ValidationError(
                "reset_percentage must be between 0 and 100",
                {"progression_id": self.id, "reset_percentage": self.reset_percentage},
            )

    @property
    def triggers(self) -> frozenset[TriggerType]:
        return frozenset({TriggerType.ON_FAILURE})

    def stage(self, index: int) -> Stage:
        return self.stages[min(max(index, 0), len(self.stages) - 1)]

    def params(self) -> dict:
        return {
            "stages": [
                {
                    "name": s.name,
                    "sets": s.sets,
                    "reps": s.reps,
                    "is_amrap": s.is_amrap,
                    "min_volume": s.min_volume,
                }
                for s in self.stages
            ],
            "on_final_failure": self.on_final_failure.value,
            "reset_percentage": self.reset_percentage,
        }


@dataclass(frozen=True)
class DeloadOnFailureProgression(Progression):
    """Deload the max after consecutive failures."""

    type: ClassVar[ProgressionType] = ProgressionType.DELOAD_ON_FAILURE

    failure_threshold: int = 3
    deload_type: DeloadType = DeloadType.PERCENT
    deload_percent: float = 10.0
    deload_amount: float = 0.0
    round_to: float | None = None

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValidationError(
                "failure_threshold must be at least 1", {"progression_id": self.id}
            )
        if self.deload_type == DeloadType.PERCENT and not 0 < self.deload_percent < 100:
            raise ValidationError(
                "deload_percent must be between 0 and 100",
                {"progression_id": self.id, "deload_percent": self.deload_percent},
            )
        if self.deload_type == DeloadType.FIXED and self.deload_amount <= 0:
            raise ValidationError(
                "deload_amount must be positive", {"progression_id": self.id}
            )

    @property
    def triggers(self) -> frozenset[TriggerType]:
        return frozenset(
            {TriggerType.ON_FAILURE, TriggerType.AFTER_SET, TriggerType.AFTER_SESSION}
        )

    def params(self) -> dict:
        return {
            "failure_threshold": self.failure_threshold,
            "deload_type": self.deload_type.value,
            "deload_percent": self.deload_percent,
            "deload_amount": self.deload_amount,
            "round_to": self.round_to,
        }


# GZCLP-style tier 1 and tier 2 stage ladders.
GZCLP_T1_STAGES = (
    Stage("5x3+", sets=5, reps=3, is_amrap=True, min_volume=15),
    Stage("6x2+", sets=6, reps=2, is_amrap=True, min_volume=12),
    Stage("10x1+", sets=10, reps=1, is_amrap=True, min_volume=10),
)
GZCLP_T2_STAGES = (
    Stage("3x10", sets=3, reps=10, min_volume=30),
    Stage("3x8", sets=3, reps=8, min_volume=24),
    Stage("3x6", sets=3, reps=6, min_volume=18),
)


def parse_progression(data: dict) -> Progression:
    """Parse a progression rule from its tagged dictionary form.

    The rule-specific parameters may sit under ``params`` or at the top level.

    Raises:
        UnknownVariant: If the rule type isn't recognised
        ValidationError: If the parameters are malformed
    """
    tag = str(data.get("type", "")).upper()
    try:
        ptype = ProgressionType(tag)
    except ValueError:
        raise UnknownVariant("progression", data.get("type")) from None

    params: dict[str, Any] = data.get("params", data)
    try:
        common = {
            "id": data["id"],
            "name": data.get("name", ""),
            "max_kind": parse_max_kind(data.get("max_kind", MaxKind.TRAINING_MAX)),
        }
        if ptype == ProgressionType.LINEAR:
            return LinearProgression(
                **common,
                increment=float(params["increment"]),
                trigger=_parse_enum(
                    TriggerType, params.get("trigger", "AFTER_SESSION"), "trigger"
                ),
            )
        if ptype == ProgressionType.DOUBLE:
            return DoubleProgression(
                **common,
                weight_increment=float(params["weight_increment"]),
                rep_ceiling=int(params["rep_ceiling"]),
            )
        if ptype == ProgressionType.CYCLE:
            return CycleProgression(**common, increment=float(params["increment"]))
        if ptype == ProgressionType.AMRAP_GUIDED:
            buckets = sorted(
                (
                    AmrapBucket(
                        min_reps=int(b["min_reps"]),
                        max_reps=int(b["max_reps"]),
                        increment=float(b["increment"]),
                    )
                    for b in params.get("buckets", [])
                ),
                key=lambda b: b.min_reps,
            )
            return AmrapGuidedProgression(
                **common,
                buckets=tuple(buckets),
                trigger=_parse_enum(
                    TriggerType, params.get("trigger", "AFTER_CYCLE"), "trigger"
                ),
            )
        if ptype == ProgressionType.STAGE:
            preset = params.get("preset")
            if preset == "gzclp_t1":
                stages = GZCLP_T1_STAGES
            elif preset == "gzclp_t2":
                stages = GZCLP_T2_STAGES
            else:
                stages = tuple(
                    Stage(
                        name=s.get("name", f"{s['sets']}x{s['reps']}"),
                        sets=int(s["sets"]),
                        reps=int(s["reps"]),
                        is_amrap=s.get("is_amrap", False),
                        min_volume=s.get("min_volume"),
                    )
                    for s in params.get("stages", [])
                )
            return StageProgression(
                **common,
                stages=stages,
                on_final_failure=_parse_enum(
                    FinalFailureAction,
                    params.get("on_final_failure", "RESET_WEIGHT"),
                    "on_final_failure",
                ),
                reset_percentage=float(params.get("reset_percentage", 100.0)),
            )
        return DeloadOnFailureProgression(
            **common,
            failure_threshold=int(params.get("failure_threshold", 3)),
            deload_type=_parse_enum(
                DeloadType, params.get("deload_type", "percent"), "deload_type"
            ),
            deload_percent=float(params.get("deload_percent", 10.0)),
            deload_amount=float(params.get("deload_amount", 0.0)),
            round_to=params.get("round_to"),
        )
    except KeyError as e:
        raise ValidationError(
            f"{tag} progression is missing {e.args[0]!r}", {"field": e.args[0]}
        ) from None


# =============================================================================
# Per-user records
# =============================================================================


@dataclass
class ProgressionLog:
    """Append-only record of an applied progression."""

    user_id: str
    progression_id: str
    lift_id: str
    previous_value: float
    new_value: float
    delta: float
    trigger_type: TriggerType
    applied_at: datetime
    action: ProgressionAction = ProgressionAction.INCREMENT
    trigger_context: dict = field(default_factory=dict)
    id: int | None = None

    def __post_init__(self):
        self.applied_at = to_local_naive(self.applied_at)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "progression_id": self.progression_id,
            "lift_id": self.lift_id,
            "previous_value": self.previous_value,
            "new_value": self.new_value,
            "delta": self.delta,
            "trigger_type": self.trigger_type.value,
            "action": self.action.value,
            "trigger_context": self.trigger_context,
            "applied_at": self.applied_at.isoformat(),
        }


@dataclass
class FailureCounter:
    """Consecutive failure count for a (user, lift, progression)."""

    user_id: str
    lift_id: str
    progression_id: str
    consecutive_failures: int = 0
    last_failure_at: datetime | None = None
    last_success_at: datetime | None = None

    def record_failure(self, when: datetime) -> int:
        """Increment the counter and return the new count."""
        self.consecutive_failures += 1
        self.last_failure_at = when
        return self.consecutive_failures

    def record_success(self, when: datetime) -> None:
        self.consecutive_failures = 0
        self.last_success_at = when

    def reset(self) -> None:
        self.consecutive_failures = 0

    def meets(self, threshold: int) -> bool:
        return self.consecutive_failures >= threshold


@dataclass
class UserProgressionState:
    """Stage index and free-form state for a (user, lift, progression)."""

    user_id: str
    lift_id: str
    progression_id: str
    current_stage: int = 0
    state: dict = field(default_factory=dict)
