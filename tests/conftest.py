"""Pytest configuration and fixtures."""

import asyncio
import pytest
import tempfile
from pathlib import Path

from powerplan.db import CatalogRepository, init_db
from powerplan.models.catalog import Catalog


def _sets(week: int, rows: list[tuple[float, int, bool]]) -> list[dict]:
    return [
        {"week_number": week, "set_number": n, "percentage": pct, "reps": reps, "is_amrap": amrap}
        for n, (pct, reps, amrap) in enumerate(rows, start=1)
    ]


def build_catalog_document() -> dict:
    """A two-program catalog: a weekly-wave program and a session-linear one."""
    return {
        "lifts": [
            {"id": "squat", "name": "Squat", "is_competition_lift": True},
            {"id": "bench", "name": "Bench Press", "is_competition_lift": True},
            {"id": "deadlift", "name": "Deadlift", "is_competition_lift": True},
            {
                "id": "paused-squat",
                "name": "Paused Squat",
                "parent_lift_id": "squat",
                "derives_max_from_parent": True,
                "parent_max_percentage": 90,
            },
        ],
        "weekly_lookups": [
            {
                "id": "waves",
                "name": "Waves",
                "rows": _sets(1, [(65, 5, False), (75, 5, False), (85, 5, True)])
                + _sets(2, [(70, 3, False), (80, 3, False), (90, 3, True)]),
            }
        ],
        "daily_lookups": [
            {
                "id": "tm-days",
                "rows": [
                    {"day_identifier": "volume", "percentage": 90, "reps": 5, "sets": 5},
                    {"day_identifier": "intensity", "percentage": 100, "reps": 5, "sets": 1},
                ],
            }
        ],
        "prescriptions": [
            {
                "id": "squat-wave",
                "lift_id": "squat",
                "order": 1,
                "load_strategy": {"type": "WEEKLY_LOOKUP", "reference_kind": "TRAINING_MAX", "round_to": 5},
                "set_scheme": {"type": "LOOKUP_DRIVEN", "work_sets": 3},
            },
            {
                "id": "bench-wave",
                "lift_id": "bench",
                "order": 2,
                "load_strategy": {"type": "WEEKLY_LOOKUP", "reference_kind": "TRAINING_MAX", "round_to": 5},
                "set_scheme": {"type": "LOOKUP_DRIVEN", "work_sets": 3},
            },
            {
                "id": "deadlift-wave",
                "lift_id": "deadlift",
                "order": 1,
                "load_strategy": {"type": "WEEKLY_LOOKUP", "reference_kind": "TRAINING_MAX", "round_to": 5},
                "set_scheme": {"type": "LOOKUP_DRIVEN", "work_sets": 3},
            },
            {
                "id": "squat-linear",
                "lift_id": "squat",
                "order": 1,
                "load_strategy": {"type": "PERCENT_OF", "reference_kind": "TRAINING_MAX", "percentage": 100, "round_to": 2.5},
                "set_scheme": {"type": "FIXED", "sets": 3, "reps": 5},
            },
            {
                "id": "bench-linear",
                "lift_id": "bench",
                "order": 2,
                "load_strategy": {"type": "PERCENT_OF", "reference_kind": "TRAINING_MAX", "percentage": 100, "round_to": 2.5},
                "set_scheme": {"type": "FIXED", "sets": 3, "reps": 5},
            },
            {
                "id": "deadlift-linear",
                "lift_id": "deadlift",
                "order": 1,
                "load_strategy": {"type": "PERCENT_OF", "reference_kind": "TRAINING_MAX", "percentage": 100, "round_to": 2.5},
                "set_scheme": {"type": "FIXED", "sets": 1, "reps": 5},
            },
        ],
        "days": [
            {"id": "wave-a", "name": "Squat / Bench", "prescription_ids": ["squat-wave", "bench-wave"]},
            {"id": "wave-b", "name": "Deadlift", "prescription_ids": ["deadlift-wave"]},
            {"id": "linear-a", "name": "A", "prescription_ids": ["squat-linear", "bench-linear"]},
            {"id": "linear-b", "name": "B", "prescription_ids": ["deadlift-linear"]},
        ],
        "cycles": [
            {
                "id": "wave-cycle",
                "weeks": [
                    {"week_number": 1, "day_ids": ["wave-a", "wave-b"]},
                    {"week_number": 2, "day_ids": ["wave-a", "wave-b"]},
                ],
            },
            {"id": "linear-cycle", "weeks": [{"week_number": 1, "day_ids": ["linear-a", "linear-b"]}]},
        ],
        "progressions": [
            {"id": "cycle-lower", "type": "CYCLE", "params": {"increment": 10}},
            {"id": "cycle-upper", "type": "CYCLE", "params": {"increment": 5}},
            {"id": "linear-5", "type": "LINEAR", "params": {"increment": 5, "trigger": "AFTER_SESSION"}},
            {
                "id": "bench-deload",
                "type": "DELOAD_ON_FAILURE",
                "params": {"failure_threshold": 3, "deload_type": "percent", "deload_percent": 10, "round_to": 2.5},
            },
            {"id": "t1-stages", "type": "STAGE", "params": {"preset": "gzclp_t1", "reset_percentage": 85}},
            {"id": "t2-stages", "type": "STAGE", "params": {"preset": "gzclp_t2"}},
            {"id": "double-5", "type": "DOUBLE", "params": {"weight_increment": 5, "rep_ceiling": 12}},
        ],
        "programs": [
            {
                "id": "wave",
                "name": "Wave",
                "cycle_id": "wave-cycle",
                "weekly_lookup_id": "waves",
                "progressions": [
                    {"progression_id": "cycle-lower", "lift_id": "squat"},
                    {"progression_id": "cycle-lower", "lift_id": "deadlift"},
                    {"progression_id": "cycle-upper", "lift_id": "bench"},
                ],
            },
            {
                "id": "linear",
                "name": "Linear",
                "cycle_id": "linear-cycle",
                "progressions": [
                    {"progression_id": "linear-5", "lift_id": "squat"},
                    {"progression_id": "linear-5", "lift_id": "deadlift", "increment_override": 10},
                    {"progression_id": "bench-deload", "lift_id": "bench"},
                    {"progression_id": "t1-stages", "lift_id": "deadlift"},
                ],
            },
        ],
    }


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def catalog_document():
    """A fresh catalog document."""
    return build_catalog_document()


@pytest.fixture
def catalog(catalog_document):
    """The parsed and validated catalog."""
    return Catalog.from_dict(catalog_document)


@pytest.fixture
def db_path(temp_db_path, catalog):
    """An initialized database with the catalog stored."""

    async def setup():
        await init_db(temp_db_path)
        await CatalogRepository(temp_db_path).save(catalog)

    asyncio.run(setup())
    return temp_db_path
