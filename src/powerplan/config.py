"""Runtime configuration for powerplan."""

import os
from pathlib import Path

# Default data directory (repository root / data)
DATA_DIR = Path(__file__).parent.parent.parent / "data"

DB_FILENAME = "powerplan.db"

DEFAULT_WORK_SET_THRESHOLD = 80.0


def get_data_dir() -> Path:
    """Get the data directory, honouring POWERPLAN_DATA_DIR."""
    override = os.environ.get("POWERPLAN_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return DATA_DIR


def get_log_level() -> str:
    """Get the log level name from POWERPLAN_LOG_LEVEL (default WARNING)."""
    return os.environ.get("POWERPLAN_LOG_LEVEL", "WARNING").upper()
