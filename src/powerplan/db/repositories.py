"""Data access layer for powerplan."""

import json
import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from ..errors import (
    DuplicateProgressionTrigger,
    InvalidEnrollmentState,
    SessionAlreadyInProgress,
    StaleStateError,
    ValidationError,
)
from ..models.catalog import Catalog
from ..models.lift import Lift, MaxKind, ReferenceMax, ReferenceMaxBook
from ..models.progress import (
    LoggedSet,
    SessionStatus,
    UserProgramState,
    WorkoutSession,
)
from ..models.progression import (
    FailureCounter,
    ProgressionAction,
    ProgressionLog,
    TriggerType,
    UserProgressionState,
)
from ..models.timestamps import to_local_naive
from .engine import get_db_path

log = logging.getLogger(__name__)

CATALOG_KINDS = (
    "lifts",
    "prescriptions",
    "days",
    "cycles",
    "programs",
    "weekly_lookups",
    "daily_lookups",
    "progressions",
)


def _ts(value: datetime | None) -> str | None:
    return to_local_naive(value).isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class CatalogRepository:
    """Repository for shared reference data."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def save(self, catalog: Catalog) -> int:
        """Replace the stored catalog. Returns the number of entries written."""
        catalog.validate()
        document = catalog.to_dict()
        count = 0
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM catalog_entries")
            for kind in CATALOG_KINDS:
                for entry in document[kind]:
                    await db.execute(
                        "INSERT INTO catalog_entries (kind, id, body) VALUES (?, ?, ?)",
                        (kind, entry["id"], json.dumps(entry)),
                    )
                    count += 1
            await db.commit()
        log.info("Saved catalog with %d entries", count)
        return count

    async def load(self) -> Catalog:
        """Load and validate the stored catalog."""
        document: dict[str, list] = {kind: [] for kind in CATALOG_KINDS}
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT kind, body FROM catalog_entries ORDER BY rowid"
            )
            rows = await cursor.fetchall()
        for row in rows:
            document.setdefault(row["kind"], []).append(json.loads(row["body"]))
        return Catalog.from_dict(document)

    async def count(self) -> dict[str, int]:
        """Count stored entries per kind."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT kind, COUNT(*) FROM catalog_entries GROUP BY kind"
            )
            rows = await cursor.fetchall()
        return {kind: n for kind, n in rows}


class ReferenceMaxRepository:
    """Repository for reference maxes. Rows are only ever inserted."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def add(self, reference_max: ReferenceMax) -> int:
        """Append a reference max."""
        async with aiosqlite.connect(self.db_path) as db:
            reference_max.id = await self._insert(db, reference_max)
            await db.commit()
        return reference_max.id

    @staticmethod
    async def _insert(db: aiosqlite.Connection, reference_max: ReferenceMax) -> int:
        cursor = await db.execute(
            """
            INSERT INTO reference_maxes
            (user_id, lift_id, kind, reps, value, effective_date)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                reference_max.user_id,
                reference_max.lift_id,
                reference_max.kind.value,
                reference_max.reps,
                reference_max.value,
                reference_max.effective_date.isoformat(),
            ),
        )
        return cursor.lastrowid

    async def list_for_user(
        self, user_id: str, as_of: datetime | None = None
    ) -> list[ReferenceMax]:
        """List a user's maxes, oldest first, optionally up to a date."""
        query = "SELECT * FROM reference_maxes WHERE user_id = ?"
        params: list = [user_id]
        if as_of is not None:
            query += " AND effective_date <= ?"
            params.append(_ts(as_of))
        query += " ORDER BY effective_date, id"
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_max(row) for row in rows]

    async def get_book(
        self,
        user_id: str,
        lifts: dict[str, Lift] | None = None,
        as_of: datetime | None = None,
    ) -> ReferenceMaxBook:
        """Get a user's max history as a book."""
        return ReferenceMaxBook(await self.list_for_user(user_id, as_of), lifts)

    async def get_current(
        self, user_id: str, lift_id: str, kind: MaxKind, reps: int | None = None
    ) -> ReferenceMax | None:
        """Get the current row for a (lift, kind) without parent derivation."""
        query = """
            SELECT * FROM reference_maxes
            WHERE user_id = ? AND lift_id = ? AND kind = ?
        """
        params: list = [user_id, lift_id, kind.value]
        if kind == MaxKind.N_REP_MAX:
            query += " AND reps = ?"
            params.append(reps)
        query += " ORDER BY effective_date DESC, id DESC LIMIT 1"
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_max(row)

    def _row_to_max(self, row: aiosqlite.Row) -> ReferenceMax:
        """Convert a database row to a ReferenceMax."""
        return ReferenceMax(
            id=row["id"],
            user_id=row["user_id"],
            lift_id=row["lift_id"],
            kind=MaxKind(row["kind"]),
            reps=row["reps"],
            value=row["value"],
            effective_date=datetime.fromisoformat(row["effective_date"]),
        )


class ProgressionRepository:
    """Repository for progression logs, failure counters and stage state."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def has_applied(
        self,
        user_id: str,
        progression_id: str,
        lift_id: str,
        trigger_type: TriggerType,
        applied_at: datetime,
    ) -> bool:
        """Check the idempotency key."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                SELECT EXISTS(
                    SELECT 1 FROM progression_logs
                    WHERE user_id = ? AND progression_id = ? AND lift_id = ?
                      AND trigger_type = ? AND applied_at = ?
                )
                """,
                (user_id, progression_id, lift_id, trigger_type.value, applied_at.isoformat()),
            )
            row = await cursor.fetchone()
            return bool(row[0])

    async def record(
        self,
        entry: ProgressionLog,
        new_max: ReferenceMax | None = None,
        counter: FailureCounter | None = None,
        stage_state: UserProgressionState | None = None,
    ) -> int:
        """Write an applied progression and its side effects in one transaction.

        Raises:
            DuplicateProgressionTrigger: If the log key already exists
        """
        async with aiosqlite.connect(self.db_path) as db:
            try:
                cursor = await db.execute(
                    """
                    INSERT INTO progression_logs
                    (user_id, progression_id, lift_id, previous_value, new_value, delta,
                     trigger_type, action, trigger_context, applied_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.user_id,
                        entry.progression_id,
                        entry.lift_id,
                        entry.previous_value,
                        entry.new_value,
                        entry.delta,
                        entry.trigger_type.value,
                        entry.action.value,
                        json.dumps(entry.trigger_context),
                        entry.applied_at.isoformat(),
                    ),
                )
            except aiosqlite.IntegrityError:
                await db.rollback()
                raise DuplicateProgressionTrigger(
                    "Progression already applied for this trigger",
                    {
                        "progression_id": entry.progression_id,
                        "lift_id": entry.lift_id,
                        "trigger_type": entry.trigger_type.value,
                    },
                ) from None
            entry.id = cursor.lastrowid

            if new_max is not None:
                new_max.id = await ReferenceMaxRepository._insert(db, new_max)
            if counter is not None:
                await self._upsert_counter(db, counter)
            if stage_state is not None:
                await self._upsert_stage_state(db, stage_state)
            await db.commit()
        return entry.id

    async def list_logs(
        self, user_id: str, lift_id: str | None = None, limit: int = 100
    ) -> list[ProgressionLog]:
        """List applied progressions, newest first."""
        query = "SELECT * FROM progression_logs WHERE user_id = ?"
        params: list = [user_id]
        if lift_id is not None:
            query += " AND lift_id = ?"
            params.append(lift_id)
        query += " ORDER BY applied_at DESC, id DESC LIMIT ?"
        params.append(limit)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_log(row) for row in rows]

    async def get_counter(
        self, user_id: str, lift_id: str, progression_id: str
    ) -> FailureCounter:
        """Get a failure counter, or a fresh one if none is stored."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM failure_counters
                WHERE user_id = ? AND lift_id = ? AND progression_id = ?
                """,
                (user_id, lift_id, progression_id),
            )
            row = await cursor.fetchone()
        if row is None:
            return FailureCounter(user_id, lift_id, progression_id)
        return FailureCounter(
            user_id=row["user_id"],
            lift_id=row["lift_id"],
            progression_id=row["progression_id"],
            consecutive_failures=row["consecutive_failures"],
            last_failure_at=_parse_ts(row["last_failure_at"]),
            last_success_at=_parse_ts(row["last_success_at"]),
        )

    async def save_counter(self, counter: FailureCounter) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await self._upsert_counter(db, counter)
            await db.commit()

    async def get_stage_state(
        self, user_id: str, lift_id: str, progression_id: str
    ) -> UserProgressionState:
        """Get progression state, or a fresh stage-0 state if none is stored."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM user_progression_states
                WHERE user_id = ? AND lift_id = ? AND progression_id = ?
                """,
                (user_id, lift_id, progression_id),
            )
            row = await cursor.fetchone()
        if row is None:
            return UserProgressionState(user_id, lift_id, progression_id)
        return self._row_to_stage_state(row)

    async def list_stage_states(self, user_id: str) -> list[UserProgressionState]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM user_progression_states WHERE user_id = ?", (user_id,)
            )
            rows = await cursor.fetchall()
            return [self._row_to_stage_state(row) for row in rows]

    @staticmethod
    async def _upsert_counter(db: aiosqlite.Connection, counter: FailureCounter) -> None:
        await db.execute(
            """
            INSERT INTO failure_counters
            (user_id, lift_id, progression_id, consecutive_failures,
             last_failure_at, last_success_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, lift_id, progression_id) DO UPDATE SET
                consecutive_failures = excluded.consecutive_failures,
                last_failure_at = excluded.last_failure_at,
                last_success_at = excluded.last_success_at
            """,
            (
                counter.user_id,
                counter.lift_id,
                counter.progression_id,
                counter.consecutive_failures,
                _ts(counter.last_failure_at),
                _ts(counter.last_success_at),
            ),
        )

    @staticmethod
    async def _upsert_stage_state(
        db: aiosqlite.Connection, state: UserProgressionState
    ) -> None:
        await db.execute(
            """
            INSERT INTO user_progression_states
            (user_id, lift_id, progression_id, current_stage, state)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, lift_id, progression_id) DO UPDATE SET
                current_stage = excluded.current_stage,
                state = excluded.state
            """,
            (
                state.user_id,
                state.lift_id,
                state.progression_id,
                state.current_stage,
                json.dumps(state.state),
            ),
        )

    def _row_to_stage_state(self, row: aiosqlite.Row) -> UserProgressionState:
        return UserProgressionState(
            user_id=row["user_id"],
            lift_id=row["lift_id"],
            progression_id=row["progression_id"],
            current_stage=row["current_stage"],
            state=json.loads(row["state"] or "{}"),
        )

    def _row_to_log(self, row: aiosqlite.Row) -> ProgressionLog:
        """Convert a database row to a ProgressionLog."""
        return ProgressionLog(
            id=row["id"],
            user_id=row["user_id"],
            progression_id=row["progression_id"],
            lift_id=row["lift_id"],
            previous_value=row["previous_value"],
            new_value=row["new_value"],
            delta=row["delta"],
            trigger_type=TriggerType(row["trigger_type"]),
            action=ProgressionAction(row["action"]),
            trigger_context=json.loads(row["trigger_context"] or "{}"),
            applied_at=datetime.fromisoformat(row["applied_at"]),
        )


class ProgramStateRepository:
    """Repository for enrollments (one per user)."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def create(self, state: UserProgramState) -> int:
        """Create an enrollment.

        Raises:
            InvalidEnrollmentState: If the user already has an enrollment
        """
        data = state.to_dict()
        async with aiosqlite.connect(self.db_path) as db:
            try:
                cursor = await db.execute(
                    """
                    INSERT INTO user_program_states
                    (user_id, program_id, current_week, current_cycle_iteration,
                     current_day_index, cycles_since_start, enrollment_status,
                     cycle_status, week_status, rotation, meet, version,
                     enrolled_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        data["user_id"],
                        data["program_id"],
                        data["current_week"],
                        data["current_cycle_iteration"],
                        data["current_day_index"],
                        data["cycles_since_start"],
                        data["enrollment_status"],
                        data["cycle_status"],
                        data["week_status"],
                        json.dumps(data["rotation"]) if data["rotation"] else None,
                        json.dumps(data["meet"]) if data["meet"] else None,
                        data["version"],
                        data["enrolled_at"],
                        data["updated_at"],
                    ),
                )
            except aiosqlite.IntegrityError:
                await db.rollback()
                raise InvalidEnrollmentState(
                    f"User '{state.user_id}' is already enrolled",
                    {"user_id": state.user_id},
                ) from None
            await db.commit()
            state.id = cursor.lastrowid
            return state.id

    async def get_by_user(self, user_id: str) -> UserProgramState | None:
        """Get a user's enrollment."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM user_program_states WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_state(row)

    async def update(self, state: UserProgramState) -> None:
        """Write the whole state if nobody else has written it since it was read.

        Raises:
            StaleStateError: If the stored version moved on
        """
        if state.id is None:
            raise ValueError("Program state must have an ID to update")

        data = state.to_dict()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                UPDATE user_program_states SET
                    program_id = ?, current_week = ?, current_cycle_iteration = ?,
                    current_day_index = ?, cycles_since_start = ?,
                    enrollment_status = ?, cycle_status = ?, week_status = ?,
                    rotation = ?, meet = ?, version = version + 1, updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    data["program_id"],
                    data["current_week"],
                    data["current_cycle_iteration"],
                    data["current_day_index"],
                    data["cycles_since_start"],
                    data["enrollment_status"],
                    data["cycle_status"],
                    data["week_status"],
                    json.dumps(data["rotation"]) if data["rotation"] else None,
                    json.dumps(data["meet"]) if data["meet"] else None,
                    data["updated_at"],
                    state.id,
                    state.version,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise StaleStateError(
                    f"Program state for '{state.user_id}' changed concurrently",
                    {"user_id": state.user_id, "version": state.version},
                )
        state.version += 1

    async def delete(self, state_id: int) -> None:
        """Delete an enrollment and its sessions."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM workout_sessions WHERE user_program_state_id = ?", (state_id,)
            )
            await db.execute("DELETE FROM user_program_states WHERE id = ?", (state_id,))
            await db.commit()

    def _row_to_state(self, row: aiosqlite.Row) -> UserProgramState:
        """Convert a database row to a UserProgramState."""
        data = {
            "user_id": row["user_id"],
            "program_id": row["program_id"],
            "current_week": row["current_week"],
            "current_cycle_iteration": row["current_cycle_iteration"],
            "current_day_index": row["current_day_index"],
            "cycles_since_start": row["cycles_since_start"],
            "enrollment_status": row["enrollment_status"],
            "cycle_status": row["cycle_status"],
            "week_status": row["week_status"],
            "rotation": json.loads(row["rotation"]) if row["rotation"] else None,
            "meet": json.loads(row["meet"]) if row["meet"] else None,
            "version": row["version"],
            "enrolled_at": row["enrolled_at"],
            "updated_at": row["updated_at"],
        }
        return UserProgramState.from_dict(data, id=row["id"])


class WorkoutSessionRepository:
    """Repository for workout sessions and logged sets."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def create(self, session: WorkoutSession) -> int:
        """Open a session.

        Raises:
            SessionAlreadyInProgress: If the enrollment already has an open session
        """
        async with aiosqlite.connect(self.db_path) as db:
            try:
                cursor = await db.execute(
                    """
                    INSERT INTO workout_sessions
                    (user_program_state_id, week_number, day_index, status, started_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        session.user_program_state_id,
                        session.week_number,
                        session.day_index,
                        session.status.value,
                        session.started_at.isoformat(),
                    ),
                )
            except aiosqlite.IntegrityError:
                await db.rollback()
                open_session = await self.get_open(session.user_program_state_id)
                raise SessionAlreadyInProgress(
                    open_session.id if open_session else None
                ) from None
            await db.commit()
            session.id = cursor.lastrowid
            return session.id

    async def get(self, session_id: int) -> WorkoutSession | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM workout_sessions WHERE id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_session(row)

    async def get_open(self, user_program_state_id: int) -> WorkoutSession | None:
        """Get the IN_PROGRESS session for an enrollment, if any."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM workout_sessions
                WHERE user_program_state_id = ? AND status = ?
                """,
                (user_program_state_id, SessionStatus.IN_PROGRESS.value),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_session(row)

    async def list_for_state(self, user_program_state_id: int) -> list[WorkoutSession]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM workout_sessions
                WHERE user_program_state_id = ? ORDER BY started_at DESC, id DESC
                """,
                (user_program_state_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_session(row) for row in rows]

    async def update_status(self, session: WorkoutSession) -> None:
        """Persist a status change made from IN_PROGRESS.

        Raises:
            StaleStateError: If the stored session is no longer IN_PROGRESS
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                UPDATE workout_sessions SET status = ?, finished_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    session.status.value,
                    _ts(session.finished_at),
                    session.id,
                    SessionStatus.IN_PROGRESS.value,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise StaleStateError(
                    f"Workout session {session.id} is no longer in progress",
                    {"session_id": session.id},
                )

    async def add_set(self, logged: LoggedSet) -> int:
        """Record a performed set."""
        if logged.reps_performed < 0:
            raise ValidationError("Reps performed cannot be negative")
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO logged_sets
                (user_id, lift_id, session_id, set_number, weight, target_reps,
                 reps_performed, is_amrap, logged_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    logged.user_id,
                    logged.lift_id,
                    logged.session_id,
                    logged.set_number,
                    logged.weight,
                    logged.target_reps,
                    logged.reps_performed,
                    int(logged.is_amrap),
                    logged.logged_at.isoformat(),
                ),
            )
            await db.commit()
            logged.id = cursor.lastrowid
            return logged.id

    async def list_sets(self, session_id: int) -> list[LoggedSet]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM logged_sets WHERE session_id = ? ORDER BY id", (session_id,)
            )
            rows = await cursor.fetchall()
            return [
                LoggedSet(
                    id=row["id"],
                    user_id=row["user_id"],
                    lift_id=row["lift_id"],
                    session_id=row["session_id"],
                    set_number=row["set_number"],
                    weight=row["weight"],
                    target_reps=row["target_reps"],
                    reps_performed=row["reps_performed"],
                    is_amrap=bool(row["is_amrap"]),
                    logged_at=datetime.fromisoformat(row["logged_at"]),
                )
                for row in rows
            ]

    def _row_to_session(self, row: aiosqlite.Row) -> WorkoutSession:
        """Convert a database row to a WorkoutSession."""
        return WorkoutSession(
            id=row["id"],
            user_program_state_id=row["user_program_state_id"],
            week_number=row["week_number"],
            day_index=row["day_index"],
            status=SessionStatus(row["status"]),
            started_at=datetime.fromisoformat(row["started_at"]),
            finished_at=_parse_ts(row["finished_at"]),
        )
