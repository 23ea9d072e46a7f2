"""Tests for set scheme expansion."""

import pytest

from powerplan.engine.loads import Coordinate, LoadContext
from powerplan.engine.sets import expand, stage_scheme
from powerplan.errors import ConfigurationError, LookupMiss
from powerplan.models.lift import MaxKind, ReferenceMax, ReferenceMaxBook
from powerplan.models.lookups import DailyLookup, DailyLookupRow, WeeklyLookup, WeeklyLookupRow
from powerplan.models.prescription import (
    AmrapSets,
    DailyLookupLoad,
    FixedSets,
    LookupDrivenSets,
    PercentOf,
    RampSets,
    RampStep,
    WeeklyLookupLoad,
)
from powerplan.models.progression import GZCLP_T1_STAGES


def _ctx(value: float, week: int = 1, weekly: WeeklyLookup | None = None) -> LoadContext:
    return LoadContext(
        maxes=ReferenceMaxBook([ReferenceMax("u", "squat", MaxKind.TRAINING_MAX, value)]),
        coordinate=Coordinate(week_number=week),
        weekly_lookup=weekly,
    )


def _ramp(*steps: tuple[float, int], threshold: float = 80.0) -> RampSets:
    return RampSets(
        steps=tuple(RampStep(percentage=pct, reps=reps) for pct, reps in steps),
        work_set_threshold=threshold,
    )


class TestFixedSets:
    """Tests for FIXED expansion."""

    def test_identical_sets(self):
        """Test every set gets the same weight and reps."""
        sets = expand(
            FixedSets(sets=3, reps=5),
            PercentOf(reference_kind=MaxKind.TRAINING_MAX, percentage=85, round_to=2.5),
            "squat",
            _ctx(315),
        )
        assert [s.set_number for s in sets] == [1, 2, 3]
        assert {s.weight for s in sets} == {267.5}
        assert not any(s.is_amrap for s in sets)

    def test_last_set_amrap(self):
        """Test only the final set of a 3x5+ is AMRAP."""
        sets = expand(
            FixedSets(sets=3, reps=5, is_amrap=True),
            PercentOf(reference_kind=MaxKind.TRAINING_MAX, percentage=100),
            "squat",
            _ctx(200),
        )
        assert [s.is_amrap for s in sets] == [False, False, True]


class TestRampSets:
    """Tests for RAMP expansion."""

    def test_authored_order_kept(self):
        """Test steps are not sorted, including a back-off set."""
        scheme = _ramp((50, 5), (63, 3), (75, 2), (88, 1), (100, 5), (75, 5))
        sets = expand(
            scheme,
            PercentOf(reference_kind=MaxKind.TRAINING_MAX, percentage=100),
            "squat",
            _ctx(100),
        )
        assert [s.weight for s in sets] == pytest.approx([50, 63, 75, 88, 100, 75])
        assert [s.target_reps for s in sets] == [5, 3, 2, 1, 5, 5]

    def test_work_set_threshold(self):
        """Test steps below the threshold are warm-ups."""
        scheme = _ramp((50, 5), (63, 3), (75, 2), (88, 1), (100, 5), (75, 5))
        sets = expand(
            scheme,
            PercentOf(reference_kind=MaxKind.TRAINING_MAX, percentage=100),
            "squat",
            _ctx(100),
        )
        assert [s.is_work_set for s in sets] == [False, False, False, True, True, False]

    def test_steps_rounded_individually(self):
        """Test each step rounds from the unrounded top set."""
        scheme = _ramp((50, 5), (100, 1))
        sets = expand(
            scheme,
            PercentOf(reference_kind=MaxKind.TRAINING_MAX, percentage=85, round_to=5),
            "squat",
            _ctx(315),
        )
        # Top set is 267.75 before rounding
        assert [s.weight for s in sets] == [135, 270]


class TestLookupDrivenSets:
    """Tests for LOOKUP_DRIVEN expansion."""

    @pytest.fixture
    def weekly(self):
        return WeeklyLookup(
            id="waves",
            rows=[
                WeeklyLookupRow(week_number=3, set_number=1, percentage=75, reps=5),
                WeeklyLookupRow(week_number=3, set_number=2, percentage=85, reps=3),
                WeeklyLookupRow(week_number=3, set_number=3, percentage=95, reps=1, is_amrap=True),
            ],
        )

    def test_rows_become_sets(self, weekly):
        """Test the 5/3/1 week: rows (week, 1..n) drive weight and reps."""
        sets = expand(
            LookupDrivenSets(work_sets=3),
            WeeklyLookupLoad(reference_kind=MaxKind.TRAINING_MAX, round_to=5),
            "squat",
            _ctx(300, week=3, weekly=weekly),
        )
        assert [(s.weight, s.target_reps, s.is_amrap) for s in sets] == [
            (225, 5, False),
            (255, 3, False),
            (285, 1, True),
        ]

    def test_missing_row(self, weekly):
        """Test asking for more sets than the table holds is a lookup miss."""
        with pytest.raises(LookupMiss):
            expand(
                LookupDrivenSets(work_sets=4),
                WeeklyLookupLoad(reference_kind=MaxKind.TRAINING_MAX),
                "squat",
                _ctx(300, week=3, weekly=weekly),
            )

    def test_missing_table(self):
        """Test a lookup-driven scheme without a table is a configuration error."""
        with pytest.raises(ConfigurationError):
            expand(
                LookupDrivenSets(work_sets=3),
                WeeklyLookupLoad(reference_kind=MaxKind.TRAINING_MAX),
                "squat",
                _ctx(300),
            )


class TestDailyDrivenSets:
    """Tests for LOOKUP_DRIVEN expansion over a daily lookup table."""

    @pytest.fixture
    def daily(self):
        return DailyLookup(
            id="texas",
            rows=[
                DailyLookupRow(day_identifier="volume", percentage=90, reps=5, sets=5),
                DailyLookupRow(day_identifier="recovery", percentage=80, reps=5, sets=2),
                DailyLookupRow(day_identifier="intensity", percentage=100, reps=5, is_amrap=True),
            ],
        )

    def _ctx(self, daily, slug):
        return LoadContext(
            maxes=ReferenceMaxBook([ReferenceMax("u", "squat", MaxKind.ONE_RM, 400)]),
            coordinate=Coordinate(week_number=1, day_slug=slug),
            daily_lookup=daily,
        )

    def test_row_sets_and_reps(self, daily):
        """Test the day's row supplies the set count, reps and percentage."""
        strategy = DailyLookupLoad(reference_kind=MaxKind.ONE_RM, round_to=5)
        volume = expand(LookupDrivenSets(), strategy, "squat", self._ctx(daily, "volume"))
        recovery = expand(LookupDrivenSets(), strategy, "squat", self._ctx(daily, "recovery"))

        assert [(s.weight, s.target_reps) for s in volume] == [(360, 5)] * 5
        assert [(s.weight, s.target_reps) for s in recovery] == [(320, 5)] * 2

    def test_row_without_sets(self, daily):
        """Test a row with no set count falls back to work_sets, AMRAP on the last set."""
        sets = expand(
            LookupDrivenSets(work_sets=2),
            DailyLookupLoad(reference_kind=MaxKind.ONE_RM, round_to=5),
            "squat",
            self._ctx(daily, "intensity"),
        )
        assert [(s.weight, s.is_amrap) for s in sets] == [(400, False), (400, True)]

    def test_unknown_day(self, daily):
        """Test a day with no row is a lookup miss."""
        with pytest.raises(LookupMiss):
            expand(
                LookupDrivenSets(),
                DailyLookupLoad(reference_kind=MaxKind.ONE_RM),
                "squat",
                self._ctx(daily, "deload"),
            )


class TestAmrapSets:
    """Tests for AMRAP expansion."""

    def test_every_set_amrap(self):
        """Test each set is AMRAP with the rep floor as target."""
        sets = expand(
            AmrapSets(sets=2, min_reps=8),
            PercentOf(reference_kind=MaxKind.TRAINING_MAX, percentage=70, round_to=5),
            "squat",
            _ctx(200),
        )
        assert [(s.weight, s.target_reps, s.is_amrap) for s in sets] == [
            (140, 8, True),
            (140, 8, True),
        ]


class TestStageScheme:
    """Tests for STAGE scheme conversion."""

    def test_stage_to_fixed(self):
        """Test a stage becomes an equivalent FIXED scheme."""
        assert stage_scheme(GZCLP_T1_STAGES[1]) == FixedSets(sets=6, reps=2, is_amrap=True)
