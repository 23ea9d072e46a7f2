"""Load strategy evaluation and weight rounding."""

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal

from ..errors import ConfigurationError, MissingReferenceMax
from ..models.lift import ReferenceMaxBook
from ..models.lookups import DailyLookup, DailyLookupRow, WeeklyLookup
from ..models.prescription import (
    DailyLookupLoad,
    LoadStrategy,
    PercentOf,
    RoundingDirection,
    WeeklyLookupLoad,
)
from .lookup import resolve_daily, resolve_weekly

_DECIMAL_ROUNDING = {
    RoundingDirection.NEAREST: ROUND_HALF_UP,
    RoundingDirection.DOWN: ROUND_FLOOR,
    RoundingDirection.UP: ROUND_CEILING,
}


@dataclass(frozen=True)
class Coordinate:
    """A position in a program's schedule."""

    week_number: int = 1
    day_position: int = 1  # 1-based
    day_slug: str | None = None
    cycle_iteration: int = 1


@dataclass
class LoadContext:
    """Everything a load strategy needs besides the strategy itself."""

    maxes: ReferenceMaxBook
    coordinate: Coordinate
    weekly_lookup: WeeklyLookup | None = None
    daily_lookup: DailyLookup | None = None


def round_weight(
    weight: float,
    increment: float | None,
    direction: RoundingDirection = RoundingDirection.NEAREST,
) -> float:
    """Snap a weight to a multiple of ``increment``.

    NEAREST rounds half-up (267.75 to 2.5 gives 267.5, 263.5 to 5 gives 265).
    No increment means no rounding.
    """
    if not increment:
        return weight
    step = Decimal(str(increment))
    multiples = (Decimal(str(weight)) / step).quantize(
        Decimal(1), rounding=_DECIMAL_ROUNDING[direction]
    )
    return float(multiples * step)


def daily_row_for(table: DailyLookup, coordinate: Coordinate) -> DailyLookupRow:
    """Resolve the daily lookup row for a schedule position.

    Identifier-keyed tables match the day slug, positional tables the day
    position within the week.
    """
    if table.keyed_by_identifier:
        return resolve_daily(table, coordinate.day_slug or "")
    return resolve_daily(table, coordinate.day_position)


def reference_value(strategy: LoadStrategy, lift_id: str, maxes: ReferenceMaxBook) -> float:
    """Get the reference max a strategy is computed from.

    Raises:
        MissingReferenceMax: If no max of the strategy's kind is recorded
    """
    value = maxes.current(lift_id, strategy.reference_kind, strategy.reference_reps)
    if value is None:
        raise MissingReferenceMax(
            lift_id, strategy.reference_kind.value, strategy.reference_reps
        )
    return value


def strategy_percentage(
    strategy: LoadStrategy, ctx: LoadContext, set_number: int | None = None
) -> float:
    """Get the percentage a strategy applies at a coordinate.

    Raises:
        LookupMiss: If the lookup table has no row for the coordinate
        ConfigurationError: If the program has no table or the row has no percentage
    """
    if isinstance(strategy, PercentOf):
        return strategy.percentage

    if isinstance(strategy, WeeklyLookupLoad):
        table = ctx.weekly_lookup
        if table is None:
            raise ConfigurationError("WEEKLY_LOOKUP load needs a weekly lookup table")
        row = resolve_weekly(
            table,
            ctx.coordinate.week_number,
            (set_number or 1) if table.has_set_rows else None,
        )
    elif isinstance(strategy, DailyLookupLoad):
        table = ctx.daily_lookup
        if table is None:
            raise ConfigurationError("DAILY_LOOKUP load needs a daily lookup table")
        row = daily_row_for(table, ctx.coordinate)
    else:
        raise ConfigurationError(f"Unsupported load strategy: {type(strategy).__name__}")

    if row.percentage is None:
        raise ConfigurationError(
            f"Lookup table '{table.id}' row has no percentage",
            {"table_id": table.id},
        )
    return row.percentage


def evaluate_raw(
    strategy: LoadStrategy, lift_id: str, ctx: LoadContext, set_number: int | None = None
) -> float:
    """Evaluate a strategy without rounding."""
    base = reference_value(strategy, lift_id, ctx.maxes)
    return base * strategy_percentage(strategy, ctx, set_number) / 100


def evaluate(
    strategy: LoadStrategy, lift_id: str, ctx: LoadContext, set_number: int | None = None
) -> float:
    """Evaluate a load strategy to a concrete, rounded weight.

    Args:
        strategy: The load strategy
        lift_id: Lift whose reference max is used
        ctx: Reference maxes, schedule coordinate and lookup tables
        set_number: 1-based set number for per-set weekly lookups

    Returns:
        The weight to load

    Raises:
        MissingReferenceMax: If the required max is absent
        LookupMiss: If a lookup table has no row for the coordinate
    """
    return round_weight(
        evaluate_raw(strategy, lift_id, ctx, set_number),
        strategy.round_to,
        strategy.rounding,
    )
