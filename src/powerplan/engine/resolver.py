"""Resolve a training day into a concrete workout."""

import logging
from dataclasses import dataclass, field

from ..errors import MissingReferenceMax, PowerplanError
from ..models.catalog import Catalog
from ..models.lift import ReferenceMaxBook
from ..models.prescription import Prescription, SetScheme
from ..models.program import Day, Program
from .loads import Coordinate, LoadContext
from .sets import SetResult, expand

log = logging.getLogger(__name__)


@dataclass
class ExerciseResult:
    """A resolved prescription: lift metadata plus concrete sets."""

    prescription_id: str
    lift_id: str
    lift_name: str
    sets: list[SetResult]
    order: int = 0
    notes: str = ""
    rest_seconds: int | None = None

    def to_dict(self) -> dict:
        return {
            "prescription_id": self.prescription_id,
            "lift_id": self.lift_id,
            "lift_name": self.lift_name,
            "order": self.order,
            "notes": self.notes,
            "rest_seconds": self.rest_seconds,
            "sets": [s.to_dict() for s in self.sets],
        }


@dataclass
class Workout:
    """A fully resolved workout for one day."""

    program_id: str
    day_id: str
    day_name: str
    coordinate: Coordinate
    exercises: list[ExerciseResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "program_id": self.program_id,
            "day_id": self.day_id,
            "day_name": self.day_name,
            "week_number": self.coordinate.week_number,
            "day_position": self.coordinate.day_position,
            "cycle_iteration": self.coordinate.cycle_iteration,
            "exercises": [e.to_dict() for e in self.exercises],
        }


@dataclass
class ResolutionError:
    """Why a single prescription couldn't be resolved."""

    prescription_id: str
    lift_id: str
    error: PowerplanError

    def to_dict(self) -> dict:
        return {
            "prescription_id": self.prescription_id,
            "lift_id": self.lift_id,
            **self.error.to_dict(),
        }


@dataclass
class DayResolution:
    """A workout plus every prescription that failed to resolve."""

    workout: Workout
    errors: list[ResolutionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def missing_maxes(self) -> list[MissingReferenceMax]:
        """All missing-max failures, one per (lift, kind, reps)."""
        seen = {}
        for item in self.errors:
            err = item.error
            if isinstance(err, MissingReferenceMax):
                seen.setdefault((err.lift_id, err.kind, err.reps), err)
        return list(seen.values())


def resolve_prescription(
    catalog: Catalog,
    prescription: Prescription,
    ctx: LoadContext,
    scheme: SetScheme | None = None,
) -> ExerciseResult:
    """Resolve one prescription, optionally with a replacement set scheme."""
    lift = catalog.get_lift(prescription.lift_id)
    sets = expand(
        scheme or prescription.set_scheme,
        prescription.load_strategy,
        prescription.lift_id,
        ctx,
    )
    return ExerciseResult(
        prescription_id=prescription.id,
        lift_id=lift.id,
        lift_name=lift.name,
        sets=sets,
        order=prescription.order,
        notes=prescription.notes,
        rest_seconds=prescription.rest_seconds,
    )


def resolve_day(
    catalog: Catalog,
    program: Program,
    day: Day,
    maxes: ReferenceMaxBook,
    coordinate: Coordinate,
    scheme_overrides: dict[str, SetScheme] | None = None,
) -> DayResolution:
    """Resolve every prescription of a day.

    Every prescription is attempted. Failures are collected so the caller
    sees all of them at once.

    Args:
        catalog: Reference data
        program: Program the day belongs to (supplies lookup tables)
        day: The training day
        maxes: The user's reference maxes
        coordinate: Schedule position being resolved
        scheme_overrides: Set schemes keyed by prescription id or lift id
            that replace the prescribed ones (active STAGE progression
            stages); a prescription id key wins over its lift id

    Returns:
        The resolved workout and the per-prescription errors
    """
    ctx = LoadContext(
        maxes=maxes,
        coordinate=coordinate,
        weekly_lookup=catalog.weekly_lookup_for(program),
        daily_lookup=catalog.daily_lookup_for(program),
    )
    overrides = scheme_overrides or {}

    workout = Workout(
        program_id=program.id, day_id=day.id, day_name=day.name or day.slug, coordinate=coordinate
    )
    errors: list[ResolutionError] = []

    prescriptions = sorted(
        (catalog.prescriptions[pid] for pid in day.prescription_ids),
        key=lambda p: p.order,
    )
    for prescription in prescriptions:
        try:
            workout.exercises.append(
                resolve_prescription(
                    catalog,
                    prescription,
                    ctx,
                    overrides.get(prescription.id, overrides.get(prescription.lift_id)),
                )
            )
        except PowerplanError as e:
            log.debug("Prescription %s failed: %s", prescription.id, e)
            errors.append(ResolutionError(prescription.id, prescription.lift_id, e))

    return DayResolution(workout=workout, errors=errors)
