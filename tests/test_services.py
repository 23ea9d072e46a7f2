"""Tests for the progression, workout and enrollment services."""

import asyncio
from datetime import datetime, timedelta

import pytest

from powerplan.db import CatalogRepository, ReferenceMaxRepository
from powerplan.errors import (
    InvalidEnrollmentState,
    NoActiveSession,
    NotEnrolled,
    SessionAlreadyInProgress,
    StaleStateError,
)
from powerplan.models.catalog import Catalog
from powerplan.models.lift import MaxKind, ReferenceMax
from powerplan.models.progress import EnrollmentStatus, SessionStatus
from powerplan.models.progression import (
    ProgressionAction,
    TriggerContext,
    TriggerEvent,
    TriggerType,
)
from powerplan.services import (
    EnrollmentService,
    ProgressionService,
    ResultStatus,
    WorkoutService,
)
from powerplan.services.progression import ALREADY_APPLIED

START = datetime(2024, 1, 1)


async def _seed_maxes(db_path, **values) -> None:
    repo = ReferenceMaxRepository(db_path)
    for lift_id, value in values.items():
        await repo.add(
            ReferenceMax("alice", lift_id, MaxKind.TRAINING_MAX, value, effective_date=START)
        )


async def _current(db_path, lift_id: str) -> float:
    row = await ReferenceMaxRepository(db_path).get_current("alice", lift_id, MaxKind.TRAINING_MAX)
    return row.value


def _tiered(document: dict) -> dict:
    """Add a program that trains squat as a T1 on day one and a T2 on day two."""
    document["prescriptions"] += [
        {
            "id": "squat-t1",
            "lift_id": "squat",
            "load_strategy": {"type": "PERCENT_OF", "reference_kind": "TRAINING_MAX", "percentage": 100, "round_to": 2.5},
            "set_scheme": {"type": "FIXED", "sets": 5, "reps": 3, "is_amrap": True},
        },
        {
            "id": "squat-t2",
            "lift_id": "squat",
            "load_strategy": {"type": "PERCENT_OF", "reference_kind": "TRAINING_MAX", "percentage": 65, "round_to": 2.5},
            "set_scheme": {"type": "FIXED", "sets": 3, "reps": 10},
        },
    ]
    document["days"] += [
        {"id": "tiers-a", "prescription_ids": ["squat-t1"]},
        {"id": "tiers-b", "prescription_ids": ["squat-t2"]},
    ]
    document["cycles"].append(
        {"id": "tiers-cycle", "weeks": [{"week_number": 1, "day_ids": ["tiers-a", "tiers-b"]}]}
    )
    document["programs"].append(
        {
            "id": "tiers",
            "name": "Tiers",
            "cycle_id": "tiers-cycle",
            "progressions": [
                {"progression_id": "t1-stages", "lift_id": "squat", "prescription_id": "squat-t1"},
                {"progression_id": "t2-stages", "lift_id": "squat", "prescription_id": "squat-t2"},
            ],
        }
    )
    return document


class TestProgressionService:
    """Tests for applying progressions exactly once."""

    def test_trigger_is_idempotent(self, db_path):
        """Test replaying a trigger is skipped and the max changes once."""
        event = TriggerEvent(
            type=TriggerType.AFTER_SESSION, timestamp=datetime(2024, 1, 3, 18, 0)
        )

        async def run():
            await _seed_maxes(db_path, squat=200)
            service = ProgressionService(db_path)
            first = await service.trigger_progression("alice", "linear-5", "squat", event)
            second = await service.trigger_progression("alice", "linear-5", "squat", event)
            return first, second, await _current(db_path, "squat"), await service.history("alice")

        first, second, current, logs = asyncio.run(run())
        assert first.status == ResultStatus.APPLIED
        assert (first.previous_value, first.new_value) == (200, 205)
        assert second.status == ResultStatus.SKIPPED
        assert second.reason == ALREADY_APPLIED
        assert current == 205
        assert len(logs) == 1

    def test_distinct_timestamps_both_apply(self, db_path):
        """Test two sessions at different times each progress."""

        async def run():
            await _seed_maxes(db_path, squat=200)
            service = ProgressionService(db_path)
            for hour in (10, 11):
                await service.trigger_progression(
                    "alice",
                    "linear-5",
                    "squat",
                    TriggerEvent(TriggerType.AFTER_SESSION, timestamp=datetime(2024, 1, 3, hour)),
                )
            return await _current(db_path, "squat")

        assert asyncio.run(run()) == 210

    def test_derived_lift_rejected(self, db_path):
        """Test a progression on a lift whose max comes from its parent is an error."""

        async def run():
            await _seed_maxes(db_path, squat=200)
            service = ProgressionService(db_path)
            results = [
                await service.trigger_progression(
                    "alice",
                    "linear-5",
                    "paused-squat",
                    TriggerEvent(TriggerType.AFTER_SESSION, timestamp=datetime(2024, 1, 3, hour)),
                )
                for hour in (10, 11)
            ]
            return results, await _current(db_path, "squat"), await service.history("alice")

        results, squat, logs = asyncio.run(run())
        assert [r.status for r in results] == [ResultStatus.ERROR] * 2
        assert {r.error.code for r in results} == {"validation_error"}
        assert results[0].error.details["parent_lift_id"] == "squat"
        assert squat == 200
        assert logs == []

    def test_forced_replay_applies(self, db_path):
        """Test a forced trigger applies an event that was already applied."""
        event = TriggerEvent(TriggerType.AFTER_SESSION, timestamp=datetime(2024, 1, 3, 18, 0))

        async def run():
            await _seed_maxes(db_path, squat=200)
            service = ProgressionService(db_path)
            await service.trigger_progression("alice", "linear-5", "squat", event)
            forced = await service.trigger_progression(
                "alice", "linear-5", "squat", event, force=True
            )
            return forced, await _current(db_path, "squat"), await service.history("alice")

        forced, squat, logs = asyncio.run(run())
        assert forced.status == ResultStatus.APPLIED
        assert (forced.previous_value, forced.new_value) == (205, 210)
        assert forced.applied_at != event.timestamp
        assert squat == 210
        assert len(logs) == 2

    def test_double_progression(self, db_path):
        """Test DOUBLE holds the weight until a set reaches the rep ceiling."""

        async def run():
            await _seed_maxes(db_path, squat=100)
            service = ProgressionService(db_path)
            results = []
            for day, reps in enumerate((10, 12), start=3):
                results.append(
                    await service.trigger_progression(
                        "alice",
                        "double-5",
                        "squat",
                        TriggerEvent(
                            TriggerType.AFTER_SET,
                            timestamp=datetime(2024, 1, day),
                            context=TriggerContext(reps_performed=reps, target_reps=8),
                        ),
                    )
                )
            return results, await _current(db_path, "squat")

        (short, top), squat = asyncio.run(run())
        assert short.status == ResultStatus.SKIPPED
        assert "rep ceiling" in short.reason
        assert top.status == ResultStatus.APPLIED
        assert top.delta == 5
        assert squat == 105

    def test_missing_max_is_error_result(self, db_path):
        """Test a missing max comes back as an error, not an exception."""

        async def run():
            return await ProgressionService(db_path).trigger_progression(
                "alice", "linear-5", "squat", TriggerEvent(TriggerType.AFTER_SESSION)
            )

        result = asyncio.run(run())
        assert result.status == ResultStatus.ERROR
        assert result.error.code == "missing_reference_max"

    def test_unknown_progression(self, db_path):
        """Test an unknown progression id is reported as not found."""

        async def run():
            return await ProgressionService(db_path).trigger_progression(
                "alice", "nope", "squat", TriggerEvent(TriggerType.AFTER_SESSION)
            )

        assert asyncio.run(run()).error.code == "not_found"

    def test_fire_trigger_fans_out(self, db_path):
        """Test AFTER_CYCLE applies every linked cycle rule with its increment."""
        event = TriggerEvent(TriggerType.AFTER_CYCLE, timestamp=datetime(2024, 2, 1))

        async def run():
            await _seed_maxes(db_path, squat=315, bench=225, deadlift=405)
            await EnrollmentService(db_path).enroll("alice", "wave")
            results = await ProgressionService(db_path).fire_trigger("alice", event)
            return results, {
                lift: await _current(db_path, lift) for lift in ("squat", "bench", "deadlift")
            }

        results, maxes = asyncio.run(run())
        assert all(r.applied for r in results)
        assert maxes == {"squat": 325, "bench": 230, "deadlift": 415}

    def test_fire_trigger_requires_enrollment(self, db_path):
        """Test fan-out needs to know the user's program."""

        async def run():
            await ProgressionService(db_path).fire_trigger(
                "alice", TriggerEvent(TriggerType.AFTER_CYCLE)
            )

        with pytest.raises(NotEnrolled):
            asyncio.run(run())

    def test_failed_sets_deload(self, db_path):
        """Test three missed bench sets deload the training max by 10%."""

        async def run():
            await _seed_maxes(db_path, squat=200, bench=150, deadlift=250)
            await EnrollmentService(db_path).enroll("alice", "linear")
            service = ProgressionService(db_path)
            outcomes = []
            for n in range(3):
                outcomes.append(
                    await service.record_set(
                        "alice", "bench", 150, 5, 3,
                        logged_at=datetime(2024, 1, 2 + n, 18, 0),
                    )
                )
            return outcomes, await _current(db_path, "bench")

        outcomes, bench = asyncio.run(run())
        actions = [o.results[0].action for o in outcomes]
        assert actions == [
            ProgressionAction.FAILURE_RECORDED,
            ProgressionAction.FAILURE_RECORDED,
            ProgressionAction.DELOAD,
        ]
        assert bench == 135

    def test_amrap_set_records_estimate(self, db_path):
        """Test an AMRAP set stores an estimated 1RM."""

        async def run():
            await _seed_maxes(db_path, squat=200, bench=150, deadlift=250)
            await EnrollmentService(db_path).enroll("alice", "linear")
            outcome = await ProgressionService(db_path).record_set(
                "alice", "squat", 200, 5, 8, is_amrap=True
            )
            row = await ReferenceMaxRepository(db_path).get_current(
                "alice", "squat", MaxKind.ESTIMATED_1RM
            )
            return outcome, row

        outcome, row = asyncio.run(run())
        assert outcome.estimated_one_rm == pytest.approx(200 * (1 + 8 / 30))
        assert row.value == pytest.approx(outcome.estimated_one_rm)


class TestWorkoutService:
    """Tests for resolving a user's workout."""

    def test_uses_enrollment_position(self, db_path):
        """Test the current position is used when none is given."""

        async def run():
            await _seed_maxes(db_path, squat=315, bench=225)
            await EnrollmentService(db_path).enroll("alice", "wave")
            return await WorkoutService(db_path).resolve_workout("wave", "alice")

        resolution = asyncio.run(run())
        assert resolution.ok
        assert resolution.workout.day_id == "wave-a"
        assert [s.weight for s in resolution.workout.exercises[0].sets] == [205, 235, 270]

    def test_explicit_position(self, db_path):
        """Test resolving week 2 day 2 without an enrollment."""

        async def run():
            await _seed_maxes(db_path, deadlift=400)
            return await WorkoutService(db_path).resolve_workout(
                "wave", "alice", week_number=2, day_position=2
            )

        resolution = asyncio.run(run())
        assert resolution.workout.day_id == "wave-b"
        assert [s.weight for s in resolution.workout.exercises[0].sets] == [280, 320, 360]

    def test_not_enrolled(self, db_path):
        """Test an implicit position needs an enrollment."""

        async def run():
            await WorkoutService(db_path).resolve_workout("wave", "alice")

        with pytest.raises(NotEnrolled):
            asyncio.run(run())

    def test_as_of(self, db_path):
        """Test resolving against the maxes of an earlier date."""

        async def run():
            await _seed_maxes(db_path, squat=200, bench=150)
            await ReferenceMaxRepository(db_path).add(
                ReferenceMax(
                    "alice", "squat", MaxKind.TRAINING_MAX, 250,
                    effective_date=START + timedelta(days=30),
                )
            )
            return await WorkoutService(db_path).resolve_workout(
                "linear", "alice", 1, 1, as_of=START + timedelta(days=1)
            )

        resolution = asyncio.run(run())
        assert resolution.workout.exercises[0].sets[0].weight == 200

    def test_stage_scheme_follows_failures(self, db_path):
        """Test a failed deadlift set moves the lift to its next stage."""

        async def run():
            await _seed_maxes(db_path, squat=200, bench=150, deadlift=250)
            await EnrollmentService(db_path).enroll("alice", "linear")
            workouts = WorkoutService(db_path)
            before = await workouts.resolve_workout("linear", "alice", 1, 2)
            await ProgressionService(db_path).record_set("alice", "deadlift", 250, 3, 2)
            after = await workouts.resolve_workout("linear", "alice", 1, 2)
            return before, after

        before, after = asyncio.run(run())
        assert [(len(e.sets), e.sets[0].target_reps) for e in before.workout.exercises] == [(5, 3)]
        assert [(len(e.sets), e.sets[0].target_reps) for e in after.workout.exercises] == [(6, 2)]

    def test_stages_per_prescription(self, db_path, catalog_document):
        """Test a lift trained as T1 and T2 keeps a stage per slot."""

        async def run():
            await CatalogRepository(db_path).save(Catalog.from_dict(_tiered(catalog_document)))
            await _seed_maxes(db_path, squat=200)
            await EnrollmentService(db_path).enroll("alice", "tiers")
            progression = ProgressionService(db_path)
            workouts = WorkoutService(db_path)

            t1_fail = await progression.record_set(
                "alice", "squat", 200, 3, 1,
                logged_at=datetime(2024, 1, 2), prescription_id="squat-t1",
            )
            first = [await workouts.resolve_workout("tiers", "alice", 1, d) for d in (1, 2)]
            t2_fail = await progression.record_set(
                "alice", "squat", 130, 10, 7,
                logged_at=datetime(2024, 1, 3), prescription_id="squat-t2",
            )
            second = [await workouts.resolve_workout("tiers", "alice", 1, d) for d in (1, 2)]
            return t1_fail, t2_fail, first, second

        t1_fail, t2_fail, first, second = asyncio.run(run())

        def schemes(resolutions):
            return [
                (len(r.workout.exercises[0].sets), r.workout.exercises[0].sets[0].target_reps)
                for r in resolutions
            ]

        assert [r.progression_id for r in t1_fail.results] == ["t1-stages"]
        assert [r.progression_id for r in t2_fail.results] == ["t2-stages"]
        assert schemes(first) == [(6, 2), (3, 10)]
        assert schemes(second) == [(6, 2), (3, 8)]
        assert second[1].workout.exercises[0].sets[0].weight == 130


class TestEnrollmentService:
    """Tests for enrollment and sessions."""

    def test_enroll_twice(self, db_path):
        """Test a live enrollment blocks a second one."""

        async def run():
            service = EnrollmentService(db_path)
            await service.enroll("alice", "wave")
            await service.enroll("alice", "linear")

        with pytest.raises(InvalidEnrollmentState):
            asyncio.run(run())

    def test_reenroll_after_quit(self, db_path):
        """Test quitting frees the user to enroll again."""

        async def run():
            service = EnrollmentService(db_path)
            await service.enroll("alice", "wave")
            await service.start_session("alice")
            quit_state = await service.quit("alice")
            state = await service.enroll("alice", "linear")
            return quit_state, state

        quit_state, state = asyncio.run(run())
        assert quit_state.enrollment_status == EnrollmentStatus.QUIT
        assert state.program_id == "linear"
        assert state.enrollment_status == EnrollmentStatus.ACTIVE

    def test_session_conflict(self, db_path):
        """Test a second session can't start while one is open."""

        async def run():
            service = EnrollmentService(db_path)
            await service.enroll("alice", "wave")
            await service.start_session("alice")
            await service.start_session("alice")

        with pytest.raises(SessionAlreadyInProgress):
            asyncio.run(run())

    def test_finish_without_session(self, db_path):
        """Test finishing needs an open session."""

        async def run():
            service = EnrollmentService(db_path)
            await service.enroll("alice", "wave")
            await service.finish_session("alice")

        with pytest.raises(NoActiveSession):
            asyncio.run(run())

    def test_finish_session(self, db_path):
        """Test finishing fires AFTER_SESSION for performed lifts and advances a day."""

        async def run():
            await _seed_maxes(db_path, squat=200, bench=150, deadlift=250)
            service = EnrollmentService(db_path)
            await service.enroll("alice", "linear")
            await service.start_session("alice")
            outcome = await service.finish_session("alice")
            return outcome, await _current(db_path, "squat"), await _current(db_path, "deadlift")

        outcome, squat, deadlift = asyncio.run(run())
        assert outcome.session.status == SessionStatus.COMPLETED
        by_lift = {(r.progression_id, r.lift_id): r for r in outcome.progressions}
        assert by_lift[("linear-5", "squat")].applied
        assert by_lift[("linear-5", "deadlift")].skipped
        assert squat == 205
        assert deadlift == 250
        assert outcome.advance.state.current_day_index == 1

    def test_failed_advance_leaves_session_open(self, db_path, monkeypatch):
        """Test a finish that fails to advance can be retried without progressing twice."""

        async def run():
            await _seed_maxes(db_path, squat=200, bench=150, deadlift=250)
            service = EnrollmentService(db_path)
            await service.enroll("alice", "linear")
            await service.start_session("alice")

            async def stale(user_id, kind):
                raise StaleStateError("Enrollment changed concurrently", {"user_id": user_id})

            with monkeypatch.context() as patch:
                patch.setattr(service, "advance_state", stale)
                with pytest.raises(StaleStateError):
                    await service.finish_session("alice")
            sessions = await service.list_sessions("alice")

            retry = await service.finish_session("alice")
            return sessions, retry, await _current(db_path, "squat")

        sessions, retry, squat = asyncio.run(run())
        assert [s.status for s in sessions] == [SessionStatus.IN_PROGRESS]
        assert retry.session.status == SessionStatus.COMPLETED
        squat_result = next(r for r in retry.progressions if r.lift_id == "squat")
        assert squat_result.reason == ALREADY_APPLIED
        assert squat == 205
        assert retry.advance.state.current_day_index == 1

    def test_advance_through_cycle(self, db_path):
        """Test week advances end the cycle, fire AFTER_CYCLE, and a cycle advance restarts."""

        async def run():
            await _seed_maxes(db_path, squat=315, bench=225, deadlift=405)
            service = EnrollmentService(db_path)
            await service.enroll("alice", "wave")
            await service.advance_state("alice", "week")
            end = await service.advance_state("alice", "week")
            with pytest.raises(InvalidEnrollmentState):
                await service.start_session("alice")
            restart = await service.advance_state("alice", "cycle")
            return end, restart, await _current(db_path, "squat")

        end, restart, squat = asyncio.run(run())
        assert end.advance.cycle_completed
        assert end.state.enrollment_status == EnrollmentStatus.BETWEEN_CYCLES
        assert len(end.progressions) == 3
        assert restart.state.current_cycle_iteration == 2
        assert restart.state.version == 3
        assert squat == 325

    def test_abandon(self, db_path):
        """Test an abandoned session doesn't advance the schedule."""

        async def run():
            service = EnrollmentService(db_path)
            await service.enroll("alice", "wave")
            await service.start_session("alice")
            abandoned = await service.abandon_session("alice")
            return abandoned, await service.get_state("alice"), await service.list_sessions("alice")

        abandoned, state, sessions = asyncio.run(run())
        assert abandoned.status == SessionStatus.ABANDONED
        assert state.current_day_index is None
        assert [s.status for s in sessions] == [SessionStatus.ABANDONED]

    def test_meet_date(self, db_path):
        """Test setting a meet date."""

        async def run():
            service = EnrollmentService(db_path)
            await service.enroll("alice", "wave")
            await service.set_meet_date("alice", (START + timedelta(days=70)).date())
            return await service.get_state("alice")

        state = asyncio.run(run())
        assert state.meet.weeks_out(START.date()) == 10


def test_trigger_context_round_trip():
    """Test trigger context drops unset fields."""
    context = TriggerContext(week_number=2, lifts_performed=["squat"])
    assert context.to_dict() == {"week_number": 2, "lifts_performed": ["squat"]}
    assert TriggerContext.from_dict(context.to_dict()) == context
