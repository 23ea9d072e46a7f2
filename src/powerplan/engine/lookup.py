"""Lookup table resolution.

Resolution is a plain keyed read. A missing key is a ``LookupMiss``; there is
no interpolation and no fallback to another week or day.
"""

from ..errors import LookupMiss
from ..models.lookups import DailyLookup, DailyLookupRow, WeeklyLookup, WeeklyLookupRow


def resolve_weekly(
    table: WeeklyLookup, week_number: int, set_number: int | None = None
) -> WeeklyLookupRow:
    """Resolve a weekly lookup row.

    Args:
        table: The weekly lookup table
        week_number: 1-based week number
        set_number: 1-based set number, for tables with per-set rows

    Returns:
        The matching row

    Raises:
        LookupMiss: If the table has no row for the key
    """
    row = table.get(week_number, set_number)
    if row is None:
        key = (week_number,) if set_number is None else (week_number, set_number)
        raise LookupMiss(table.id, list(key))
    return row


def resolve_daily(table: DailyLookup, key: int | str) -> DailyLookupRow:
    """Resolve a daily lookup row by 1-based position or identifier.

    Identifiers match case-insensitively.

    Raises:
        LookupMiss: If the table has no row for the key
    """
    row = table.get(key)
    if row is None:
        raise LookupMiss(table.id, key)
    return row


def weekly_rows_for(table: WeeklyLookup, week_number: int, count: int) -> list[WeeklyLookupRow]:
    """Resolve rows (week, 1..count) in set order."""
    return [resolve_weekly(table, week_number, n) for n in range(1, count + 1)]
