"""Weekly and daily lookup tables."""

from dataclasses import dataclass, field
from enum import Enum

from ..errors import ValidationError


class IntensityLevel(str, Enum):
    """Intensity tag for a daily lookup row."""

    HEAVY = "HEAVY"
    MEDIUM = "MEDIUM"
    LIGHT = "LIGHT"


def _check_row_values(table_id: str, percentage, reps, sets) -> None:
    if percentage is not None and percentage <= 0:
        raise ValidationError(
            "Lookup percentage must be positive",
            {"table_id": table_id, "percentage": percentage},
        )
    if reps is not None and reps < 1:
        raise ValidationError(
            "Lookup reps must be at least 1", {"table_id": table_id, "reps": reps}
        )
    if sets is not None and sets < 1:
        raise ValidationError(
            "Lookup sets must be at least 1", {"table_id": table_id, "sets": sets}
        )


@dataclass
class WeeklyLookupRow:
    """One row of a weekly lookup table.

    Keyed by week number, optionally refined by set number.
    """

    week_number: int
    set_number: int | None = None
    percentage: float | None = None
    reps: int | None = None
    sets: int | None = None
    is_amrap: bool = False

    @property
    def key(self) -> tuple[int, int | None]:
        return (self.week_number, self.set_number)

    def to_dict(self) -> dict:
        return {
            "week_number": self.week_number,
            "set_number": self.set_number,
            "percentage": self.percentage,
            "reps": self.reps,
            "sets": self.sets,
            "is_amrap": self.is_amrap,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WeeklyLookupRow":
        return cls(
            week_number=int(data["week_number"]),
            set_number=data.get("set_number"),
            percentage=data.get("percentage"),
            reps=data.get("reps"),
            sets=data.get("sets"),
            is_amrap=data.get("is_amrap", False),
        )


@dataclass
class WeeklyLookup:
    """Week-indexed table of percentages and reps (e.g. 5/3/1 waves).

    A table either has per-set rows for every week or no per-set rows at all.
    """

    id: str
    name: str = ""
    rows: list[WeeklyLookupRow] = field(default_factory=list)

    def __post_init__(self):
        self._index: dict[tuple[int, int | None], WeeklyLookupRow] = {}
        per_set = {row.set_number is not None for row in self.rows}
        if len(per_set) > 1:
            raise ValidationError(
                "Weekly lookup mixes per-set and per-week rows", {"table_id": self.id}
            )
        for row in self.rows:
            if row.week_number < 1:
                raise ValidationError(
                    "Week number must be at least 1",
                    {"table_id": self.id, "week_number": row.week_number},
                )
            if row.set_number is not None and row.set_number < 1:
                raise ValidationError(
                    "Set number must be at least 1",
                    {"table_id": self.id, "set_number": row.set_number},
                )
            _check_row_values(self.id, row.percentage, row.reps, row.sets)
            if row.key in self._index:
                raise ValidationError(
                    f"Duplicate weekly lookup key {row.key}",
                    {"table_id": self.id, "key": list(row.key)},
                )
            self._index[row.key] = row

    @property
    def has_set_rows(self) -> bool:
        """Whether rows are keyed per set."""
        return any(row.set_number is not None for row in self.rows)

    def get(self, week_number: int, set_number: int | None = None) -> WeeklyLookupRow | None:
        return self._index.get((week_number, set_number))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rows": [row.to_dict() for row in self.rows],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WeeklyLookup":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            rows=[WeeklyLookupRow.from_dict(r) for r in data.get("rows", [])],
        )


@dataclass
class DailyLookupRow:
    """One row of a daily lookup table (e.g. Texas Method heavy/light days).

    Keyed by 1-based day position or by a day identifier string.
    """

    day_position: int | None = None
    day_identifier: str | None = None
    percentage: float | None = None
    reps: int | None = None
    sets: int | None = None
    is_amrap: bool = False
    intensity_level: IntensityLevel | None = None

    @property
    def key(self) -> int | str:
        if self.day_identifier is not None:
            return self.day_identifier.lower()
        return self.day_position

    def to_dict(self) -> dict:
        return {
            "day_position": self.day_position,
            "day_identifier": self.day_identifier,
            "percentage": self.percentage,
            "reps": self.reps,
            "sets": self.sets,
            "is_amrap": self.is_amrap,
            "intensity_level": self.intensity_level.value if self.intensity_level else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailyLookupRow":
        level = data.get("intensity_level")
        try:
            intensity = IntensityLevel(level.upper()) if level else None
        except ValueError:
            raise ValidationError(
                f"Unknown intensity level: {level!r}", {"intensity_level": level}
            ) from None
        return cls(
            day_position=data.get("day_position"),
            day_identifier=data.get("day_identifier"),
            percentage=data.get("percentage"),
            reps=data.get("reps"),
            sets=data.get("sets"),
            is_amrap=data.get("is_amrap", False),
            intensity_level=intensity,
        )


@dataclass
class DailyLookup:
    """Day-indexed table of percentages and reps."""

    id: str
    name: str = ""
    rows: list[DailyLookupRow] = field(default_factory=list)

    def __post_init__(self):
        self._index: dict[int | str, DailyLookupRow] = {}
        for row in self.rows:
            if (row.day_position is None) == (row.day_identifier is None):
                raise ValidationError(
                    "Daily lookup rows need exactly one of day_position or day_identifier",
                    {"table_id": self.id},
                )
            if row.day_position is not None and row.day_position < 1:
                raise ValidationError(
                    "Day position must be at least 1",
                    {"table_id": self.id, "day_position": row.day_position},
                )
            _check_row_values(self.id, row.percentage, row.reps, row.sets)
            if row.key in self._index:
                raise ValidationError(
                    f"Duplicate daily lookup key {row.key!r}",
                    {"table_id": self.id, "key": row.key},
                )
            self._index[row.key] = row
        if len({type(key) for key in self._index}) > 1:
            raise ValidationError(
                "Daily lookup mixes positional and identifier keys", {"table_id": self.id}
            )

    @property
    def keyed_by_identifier(self) -> bool:
        return any(row.day_identifier is not None for row in self.rows)

    def get(self, key: int | str) -> DailyLookupRow | None:
        if isinstance(key, str):
            key = key.lower()
        return self._index.get(key)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rows": [row.to_dict() for row in self.rows],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailyLookup":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            rows=[DailyLookupRow.from_dict(r) for r in data.get("rows", [])],
        )
