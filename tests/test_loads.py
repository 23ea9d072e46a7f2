"""Tests for lookup resolution, load evaluation and rounding."""

import pytest

from powerplan.engine.loads import Coordinate, LoadContext, evaluate, round_weight
from powerplan.engine.lookup import resolve_daily, resolve_weekly, weekly_rows_for
from powerplan.errors import ConfigurationError, LookupMiss, MissingReferenceMax
from powerplan.models.lift import MaxKind, ReferenceMax, ReferenceMaxBook
from powerplan.models.lookups import DailyLookup, DailyLookupRow, WeeklyLookup, WeeklyLookupRow
from powerplan.models.prescription import (
    DailyLookupLoad,
    PercentOf,
    RoundingDirection,
    WeeklyLookupLoad,
)


def _book(**values) -> ReferenceMaxBook:
    return ReferenceMaxBook(
        [ReferenceMax("u", lift, MaxKind.TRAINING_MAX, value) for lift, value in values.items()]
    )


@pytest.fixture
def weekly():
    return WeeklyLookup(
        id="waves",
        rows=[
            WeeklyLookupRow(week_number=1, set_number=1, percentage=65, reps=5),
            WeeklyLookupRow(week_number=1, set_number=2, percentage=75, reps=5),
            WeeklyLookupRow(week_number=1, set_number=3, percentage=85, reps=5, is_amrap=True),
        ],
    )


@pytest.fixture
def daily():
    return DailyLookup(
        id="days",
        rows=[
            DailyLookupRow(day_identifier="heavy", percentage=100, reps=5),
            DailyLookupRow(day_identifier="light", percentage=80, reps=5),
        ],
    )


class TestLookupResolver:
    """Tests for lookup table resolution."""

    def test_resolve_weekly(self, weekly):
        """Test a keyed read of a weekly row."""
        row = resolve_weekly(weekly, 1, 3)
        assert row.percentage == 85
        assert row.is_amrap

    def test_weekly_miss(self, weekly):
        """Test a missing week raises LookupMiss without falling back."""
        with pytest.raises(LookupMiss) as exc_info:
            resolve_weekly(weekly, 2, 1)
        assert exc_info.value.table_id == "waves"

    def test_weekly_rows_for(self, weekly):
        """Test rows come back in set order."""
        rows = weekly_rows_for(weekly, 1, 3)
        assert [r.percentage for r in rows] == [65, 75, 85]

    def test_resolve_daily(self, daily):
        """Test identifier lookups are case-insensitive."""
        assert resolve_daily(daily, "Light").percentage == 80

    def test_daily_miss(self, daily):
        """Test an unknown day identifier raises LookupMiss."""
        with pytest.raises(LookupMiss):
            resolve_daily(daily, "medium")


class TestRounding:
    """Tests for weight rounding."""

    def test_nearest_rounds_half_up(self):
        """Test NEAREST snaps ties upward."""
        assert round_weight(263.5, 5) == 265
        assert round_weight(262.5, 5) == 265
        assert round_weight(262.4, 5) == 260

    def test_nearest_small_increment(self):
        """Test rounding to 2.5."""
        assert round_weight(97.3, 2.5) == 97.5
        assert round_weight(267.75, 2.5) == 267.5

    def test_directions(self):
        """Test DOWN and UP."""
        assert round_weight(267.75, 5, RoundingDirection.DOWN) == 265
        assert round_weight(266.0, 5, RoundingDirection.UP) == 270
        assert round_weight(265.0, 5, RoundingDirection.UP) == 265

    def test_no_increment(self):
        """Test a missing increment leaves the weight alone."""
        assert round_weight(267.75, None) == 267.75


class TestLoadStrategyEvaluator:
    """Tests for load strategy evaluation."""

    def test_percent_of_training_max(self):
        """Test 85% of a 315 training max rounded to 2.5."""
        strategy = PercentOf(reference_kind=MaxKind.TRAINING_MAX, percentage=85, round_to=2.5)
        ctx = LoadContext(maxes=_book(squat=315), coordinate=Coordinate())
        assert evaluate(strategy, "squat", ctx) == 267.5

    def test_missing_max(self):
        """Test a missing reference max names the lift and kind."""
        strategy = PercentOf(reference_kind=MaxKind.ONE_RM, percentage=85)
        ctx = LoadContext(maxes=_book(squat=315), coordinate=Coordinate())
        with pytest.raises(MissingReferenceMax) as exc_info:
            evaluate(strategy, "squat", ctx)
        assert exc_info.value.lift_id == "squat"
        assert exc_info.value.kind == "ONE_RM"

    def test_weekly_lookup_per_set(self, weekly):
        """Test a per-set weekly table uses the set number."""
        strategy = WeeklyLookupLoad(reference_kind=MaxKind.TRAINING_MAX, round_to=5)
        ctx = LoadContext(
            maxes=_book(squat=300), coordinate=Coordinate(week_number=1), weekly_lookup=weekly
        )
        assert evaluate(strategy, "squat", ctx, set_number=1) == 195
        assert evaluate(strategy, "squat", ctx, set_number=3) == 255

    def test_weekly_lookup_without_table(self):
        """Test a weekly strategy without a table is a configuration error."""
        strategy = WeeklyLookupLoad(reference_kind=MaxKind.TRAINING_MAX)
        ctx = LoadContext(maxes=_book(squat=300), coordinate=Coordinate())
        with pytest.raises(ConfigurationError):
            evaluate(strategy, "squat", ctx)

    def test_daily_lookup_by_slug(self, daily):
        """Test an identifier-keyed daily table uses the day slug."""
        strategy = DailyLookupLoad(reference_kind=MaxKind.TRAINING_MAX, round_to=5)
        ctx = LoadContext(
            maxes=_book(squat=300),
            coordinate=Coordinate(day_position=2, day_slug="light"),
            daily_lookup=daily,
        )
        assert evaluate(strategy, "squat", ctx) == 240

    def test_daily_lookup_by_position(self):
        """Test a positional daily table uses the day position."""
        table = DailyLookup(
            id="pos",
            rows=[
                DailyLookupRow(day_position=1, percentage=90),
                DailyLookupRow(day_position=2, percentage=70),
            ],
        )
        strategy = DailyLookupLoad(reference_kind=MaxKind.TRAINING_MAX)
        ctx = LoadContext(
            maxes=_book(squat=200), coordinate=Coordinate(day_position=2), daily_lookup=table
        )
        assert evaluate(strategy, "squat", ctx) == pytest.approx(140)

    def test_lookup_row_without_percentage(self):
        """Test a row that carries only reps can't drive a load."""
        table = WeeklyLookup(id="reps-only", rows=[WeeklyLookupRow(week_number=1, reps=5)])
        strategy = WeeklyLookupLoad(reference_kind=MaxKind.TRAINING_MAX)
        ctx = LoadContext(maxes=_book(squat=200), coordinate=Coordinate(), weekly_lookup=table)
        with pytest.raises(ConfigurationError):
            evaluate(strategy, "squat", ctx)
