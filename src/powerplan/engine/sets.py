"""Set scheme expansion into concrete sets."""

from dataclasses import dataclass

from ..errors import ConfigurationError
from ..models.prescription import (
    AmrapSets,
    FixedSets,
    LoadStrategy,
    LookupDrivenSets,
    RampSets,
    SetScheme,
)
from ..models.progression import Stage
from .loads import (
    LoadContext,
    daily_row_for,
    evaluate,
    evaluate_raw,
    reference_value,
    round_weight,
)
from .lookup import weekly_rows_for


@dataclass
class SetResult:
    """One concrete set to perform."""

    set_number: int
    weight: float
    target_reps: int
    is_amrap: bool = False
    is_work_set: bool = True

    def to_dict(self) -> dict:
        return {
            "set_number": self.set_number,
            "weight": self.weight,
            "target_reps": self.target_reps,
            "is_amrap": self.is_amrap,
            "is_work_set": self.is_work_set,
        }


def stage_scheme(stage: Stage) -> FixedSets:
    """Get the set scheme a STAGE progression stage prescribes."""
    return FixedSets(sets=stage.sets, reps=stage.reps, is_amrap=stage.is_amrap)


def _expand_fixed(scheme: FixedSets, strategy, lift_id, ctx) -> list[SetResult]:
    weight = evaluate(strategy, lift_id, ctx)
    return [
        SetResult(
            set_number=n,
            weight=weight,
            target_reps=scheme.reps,
            is_amrap=scheme.is_amrap and n == scheme.sets,
        )
        for n in range(1, scheme.sets + 1)
    ]


def _expand_ramp(scheme: RampSets, strategy, lift_id, ctx) -> list[SetResult]:
    # Steps are percentages of the top set; authored order is kept.
    top = evaluate_raw(strategy, lift_id, ctx)
    return [
        SetResult(
            set_number=n,
            weight=round_weight(top * step.percentage / 100, strategy.round_to, strategy.rounding),
            target_reps=step.reps,
            is_work_set=step.percentage >= scheme.work_set_threshold,
        )
        for n, step in enumerate(scheme.steps, start=1)
    ]


def _expand_lookup_driven(scheme: LookupDrivenSets, strategy, lift_id, ctx) -> list[SetResult]:
    if ctx.weekly_lookup is None and ctx.daily_lookup is not None:
        return _expand_daily_driven(scheme, strategy, lift_id, ctx)
    table = ctx.weekly_lookup
    if table is None:
        raise ConfigurationError("LOOKUP_DRIVEN sets need a weekly or daily lookup table")

    base = reference_value(strategy, lift_id, ctx.maxes)
    rows = weekly_rows_for(table, ctx.coordinate.week_number, scheme.work_sets)
    results = []
    for n, row in enumerate(rows, start=1):
        if row.percentage is None or row.reps is None:
            raise ConfigurationError(
                f"Lookup table '{table.id}' row (week {row.week_number}, set {n}) "
                "needs a percentage and reps",
                {"table_id": table.id, "week_number": row.week_number, "set_number": n},
            )
        results.append(
            SetResult(
                set_number=n,
                weight=round_weight(base * row.percentage / 100, strategy.round_to, strategy.rounding),
                target_reps=row.reps,
                is_amrap=row.is_amrap,
            )
        )
    return results


def _expand_daily_driven(scheme: LookupDrivenSets, strategy, lift_id, ctx) -> list[SetResult]:
    # One daily row describes the whole day: sets x reps at a percentage.
    table = ctx.daily_lookup
    row = daily_row_for(table, ctx.coordinate)
    if row.percentage is None or row.reps is None:
        raise ConfigurationError(
            f"Lookup table '{table.id}' row {row.key!r} needs a percentage and reps",
            {"table_id": table.id, "key": row.key},
        )
    sets = row.sets or scheme.work_sets
    base = reference_value(strategy, lift_id, ctx.maxes)
    weight = round_weight(base * row.percentage / 100, strategy.round_to, strategy.rounding)
    return [
        SetResult(
            set_number=n,
            weight=weight,
            target_reps=row.reps,
            is_amrap=row.is_amrap and n == sets,
        )
        for n in range(1, sets + 1)
    ]


def _expand_amrap(scheme: AmrapSets, strategy, lift_id, ctx) -> list[SetResult]:
    weight = evaluate(strategy, lift_id, ctx)
    return [
        SetResult(set_number=n, weight=weight, target_reps=scheme.min_reps, is_amrap=True)
        for n in range(1, scheme.sets + 1)
    ]


_EXPANDERS = {
    FixedSets: _expand_fixed,
    RampSets: _expand_ramp,
    LookupDrivenSets: _expand_lookup_driven,
    AmrapSets: _expand_amrap,
}


def expand(
    scheme: SetScheme, strategy: LoadStrategy, lift_id: str, ctx: LoadContext
) -> list[SetResult]:
    """Expand a set scheme into concrete sets.

    Args:
        scheme: The set scheme
        strategy: Load strategy that sets the top weight and rounding
        lift_id: Lift whose reference maxes are used
        ctx: Reference maxes, coordinate and lookup tables

    Returns:
        Sets in the order they are performed

    Raises:
        ConfigurationError: If the scheme yields no sets
        MissingReferenceMax: If the required max is absent
        LookupMiss: If a lookup row is missing
    """
    expander = _EXPANDERS.get(type(scheme))
    if expander is None:
        raise ConfigurationError(f"Unsupported set scheme: {type(scheme).__name__}")

    sets = expander(scheme, strategy, lift_id, ctx)
    if not sets:
        raise ConfigurationError(
            f"{scheme.type} scheme produced no sets for week {ctx.coordinate.week_number}",
            {"lift_id": lift_id},
        )
    return sets
