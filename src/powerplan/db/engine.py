"""Database engine setup and initialization."""

import logging
from pathlib import Path

import aiosqlite

from ..config import DB_FILENAME, get_data_dir

log = logging.getLogger(__name__)


def get_db_path(data_dir: Path | None = None) -> Path:
    """Get the database file path."""
    if data_dir is None:
        data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / DB_FILENAME


async def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    if db_path is None:
        db_path = get_db_path()

    async with aiosqlite.connect(db_path) as db:
        # Catalog documents (lifts, prescriptions, programs, lookups, rules)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS catalog_entries (
                kind TEXT NOT NULL,
                id TEXT NOT NULL,
                body TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (kind, id)
            )
        """)

        # Reference maxes, append-only
        await db.execute("""
            CREATE TABLE IF NOT EXISTS reference_maxes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                lift_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                reps INTEGER,
                value REAL NOT NULL CHECK (value > 0),
                effective_date TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Applied progressions; the unique index is the idempotency key
        await db.execute("""
            CREATE TABLE IF NOT EXISTS progression_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                progression_id TEXT NOT NULL,
                lift_id TEXT NOT NULL,
                previous_value REAL NOT NULL,
                new_value REAL NOT NULL,
                delta REAL NOT NULL,
                trigger_type TEXT NOT NULL,
                action TEXT NOT NULL,
                trigger_context TEXT DEFAULT '{}',
                applied_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS failure_counters (
                user_id TEXT NOT NULL,
                lift_id TEXT NOT NULL,
                progression_id TEXT NOT NULL,
                consecutive_failures INTEGER NOT NULL DEFAULT 0,
                last_failure_at TEXT,
                last_success_at TEXT,
                PRIMARY KEY (user_id, lift_id, progression_id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS user_progression_states (
                user_id TEXT NOT NULL,
                lift_id TEXT NOT NULL,
                progression_id TEXT NOT NULL,
                current_stage INTEGER NOT NULL DEFAULT 0,
                state TEXT DEFAULT '{}',
                PRIMARY KEY (user_id, lift_id, progression_id)
            )
        """)

        # One enrollment per user
        await db.execute("""
            CREATE TABLE IF NOT EXISTS user_program_states (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL UNIQUE,
                program_id TEXT NOT NULL,
                current_week INTEGER NOT NULL DEFAULT 1,
                current_cycle_iteration INTEGER NOT NULL DEFAULT 1,
                current_day_index INTEGER,
                cycles_since_start INTEGER NOT NULL DEFAULT 0,
                enrollment_status TEXT NOT NULL,
                cycle_status TEXT NOT NULL,
                week_status TEXT NOT NULL,
                rotation TEXT,
                meet TEXT,
                version INTEGER NOT NULL DEFAULT 0,
                enrolled_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS workout_sessions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_program_state_id INTEGER NOT NULL,
                week_number INTEGER NOT NULL,
                day_index INTEGER NOT NULL,
                status TEXT NOT NULL,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                FOREIGN KEY (user_program_state_id) REFERENCES user_program_states(id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS logged_sets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                lift_id TEXT NOT NULL,
                session_id INTEGER,
                set_number INTEGER NOT NULL DEFAULT 1,
                weight REAL NOT NULL,
                target_reps INTEGER NOT NULL,
                reps_performed INTEGER NOT NULL,
                is_amrap INTEGER DEFAULT 0,
                logged_at TEXT NOT NULL,
                FOREIGN KEY (session_id) REFERENCES workout_sessions(id)
            )
        """)

        # Indexes
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_reference_maxes_lookup
            ON reference_maxes(user_id, lift_id, kind)
        """)
        await db.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_progression_logs_trigger
            ON progression_logs(user_id, progression_id, lift_id, trigger_type, applied_at)
        """)
        await db.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_workout_sessions_open
            ON workout_sessions(user_program_state_id)
            WHERE status = 'IN_PROGRESS'
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_logged_sets_user_lift
            ON logged_sets(user_id, lift_id)
        """)

        await db.commit()
    log.info("Database initialized at %s", db_path)
