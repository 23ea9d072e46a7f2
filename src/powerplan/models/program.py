"""Program structure models: days, weeks, cycles and programs."""

from dataclasses import dataclass, field

from ..errors import ValidationError


@dataclass
class Day:
    """A training day: an ordered list of prescription ids."""

    id: str
    name: str = ""
    slug: str = ""
    prescription_ids: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.slug:
            self.slug = self.id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "prescription_ids": list(self.prescription_ids),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Day":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            prescription_ids=list(data.get("prescription_ids", [])),
        )


@dataclass
class Week:
    """A week of a cycle: the training days in order."""

    week_number: int
    day_ids: list[str] = field(default_factory=list)

    def __post_init__(self):
        if self.week_number < 1:
            raise ValidationError(
                "Week number must be at least 1", {"week_number": self.week_number}
            )
        if not self.day_ids:
            raise ValidationError(
                f"Week {self.week_number} has no training days",
                {"week_number": self.week_number},
            )

    @property
    def days_count(self) -> int:
        return len(self.day_ids)

    def to_dict(self) -> dict:
        return {"week_number": self.week_number, "day_ids": list(self.day_ids)}

    @classmethod
    def from_dict(cls, data: dict) -> "Week":
        return cls(week_number=int(data["week_number"]), day_ids=list(data.get("day_ids", [])))


@dataclass
class Cycle:
    """An ordered run of weeks, repeated for each cycle iteration."""

    id: str
    name: str = ""
    weeks: list[Week] = field(default_factory=list)

    def __post_init__(self):
        if not self.weeks:
            raise ValidationError(f"Cycle '{self.id}' has no weeks", {"cycle_id": self.id})
        numbers = [w.week_number for w in self.weeks]
        if sorted(numbers) != list(range(1, len(numbers) + 1)):
            raise ValidationError(
                f"Cycle '{self.id}' weeks must be numbered 1..{len(numbers)}",
                {"cycle_id": self.id, "week_numbers": numbers},
            )
        self.weeks.sort(key=lambda w: w.week_number)

    @property
    def length(self) -> int:
        """Number of weeks in the cycle."""
        return len(self.weeks)

    def get_week(self, week_number: int) -> Week:
        if not 1 <= week_number <= self.length:
            raise ValidationError(
                f"Week {week_number} is outside cycle '{self.id}'",
                {"cycle_id": self.id, "week_number": week_number},
            )
        return self.weeks[week_number - 1]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "weeks": [w.to_dict() for w in self.weeks],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cycle":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            weeks=[Week.from_dict(w) for w in data.get("weeks", [])],
        )


@dataclass
class ProgramProgression:
    """Links a progression rule to a lift within a program.

    A link may be scoped to one prescription when the same lift appears in
    the program under different rules, such as a T1 and a T2 slot.
    """

    progression_id: str
    lift_id: str
    increment_override: float | None = None
    enabled: bool = True
    priority: int = 0
    prescription_id: str | None = None

    def applies_to(self, prescription_id: str | None) -> bool:
        """Whether events for a prescription reach this link.

        Events that name no prescription reach every link for the lift.
        """
        return prescription_id is None or self.prescription_id in (None, prescription_id)

    def to_dict(self) -> dict:
        return {
            "progression_id": self.progression_id,
            "lift_id": self.lift_id,
            "increment_override": self.increment_override,
            "enabled": self.enabled,
            "priority": self.priority,
            "prescription_id": self.prescription_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProgramProgression":
        return cls(
            progression_id=data["progression_id"],
            lift_id=data["lift_id"],
            increment_override=data.get("increment_override"),
            enabled=data.get("enabled", True),
            priority=data.get("priority", 0),
            prescription_id=data.get("prescription_id"),
        )


@dataclass
class Program:
    """A complete training program."""

    id: str
    name: str
    cycle_id: str
    slug: str = ""
    description: str = ""
    weekly_lookup_id: str | None = None
    daily_lookup_id: str | None = None
    progressions: list[ProgramProgression] = field(default_factory=list)
    rotation_length: int | None = None

    def __post_init__(self):
        if not self.slug:
            self.slug = self.id
        if self.rotation_length is not None and self.rotation_length < 1:
            raise ValidationError(
                "Rotation length must be at least 1", {"program_id": self.id}
            )

    def progressions_for(self, lift_id: str | None = None) -> list[ProgramProgression]:
        """Get enabled progression links, highest priority first."""
        links = [
            p for p in self.progressions
            if p.enabled and (lift_id is None or p.lift_id == lift_id)
        ]
        return sorted(links, key=lambda p: -p.priority)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "cycle_id": self.cycle_id,
            "weekly_lookup_id": self.weekly_lookup_id,
            "daily_lookup_id": self.daily_lookup_id,
            "progressions": [p.to_dict() for p in self.progressions],
            "rotation_length": self.rotation_length,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Program":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            slug=data.get("slug", ""),
            description=data.get("description", ""),
            cycle_id=data["cycle_id"],
            weekly_lookup_id=data.get("weekly_lookup_id"),
            daily_lookup_id=data.get("daily_lookup_id"),
            progressions=[ProgramProgression.from_dict(p) for p in data.get("progressions", [])],
            rotation_length=data.get("rotation_length"),
        )
