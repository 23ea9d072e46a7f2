"""Shared reference data: lifts, prescriptions, program structure, rules."""

from dataclasses import dataclass, field

from ..errors import NotFound, ValidationError
from .lift import Lift
from .lookups import DailyLookup, WeeklyLookup
from .prescription import (
    DailyLookupLoad,
    LookupDrivenSets,
    Prescription,
    WeeklyLookupLoad,
)
from .program import Cycle, Day, Program
from .progression import Progression, parse_progression


def _index(items, what: str) -> dict:
    index = {}
    for item in items:
        if item.id in index:
            raise ValidationError(f"Duplicate {what} id: {item.id}", {what: item.id})
        index[item.id] = item
    return index


@dataclass
class Catalog:
    """Everything per-user operations read but never write."""

    lifts: dict[str, Lift] = field(default_factory=dict)
    prescriptions: dict[str, Prescription] = field(default_factory=dict)
    days: dict[str, Day] = field(default_factory=dict)
    cycles: dict[str, Cycle] = field(default_factory=dict)
    programs: dict[str, Program] = field(default_factory=dict)
    weekly_lookups: dict[str, WeeklyLookup] = field(default_factory=dict)
    daily_lookups: dict[str, DailyLookup] = field(default_factory=dict)
    progressions: dict[str, Progression] = field(default_factory=dict)

    def validate(self) -> None:
        """Check every cross reference.

        Raises:
            ValidationError: On the first dangling reference
        """
        for lift in self.lifts.values():
            if lift.parent_lift_id and lift.parent_lift_id not in self.lifts:
                raise ValidationError(
                    f"Lift '{lift.id}' has unknown parent '{lift.parent_lift_id}'",
                    {"lift_id": lift.id},
                )
            seen = {lift.id}
            parent = lift.parent_lift_id
            while parent:
                if parent in seen:
                    raise ValidationError(
                        f"Lift '{lift.id}' has a cyclic parent chain", {"lift_id": lift.id}
                    )
                seen.add(parent)
                parent = self.lifts[parent].parent_lift_id if parent in self.lifts else None
        for p in self.prescriptions.values():
            if p.lift_id not in self.lifts:
                raise ValidationError(
                    f"Prescription '{p.id}' references unknown lift '{p.lift_id}'",
                    {"prescription_id": p.id},
                )
        for day in self.days.values():
            for pid in day.prescription_ids:
                if pid not in self.prescriptions:
                    raise ValidationError(
                        f"Day '{day.id}' references unknown prescription '{pid}'",
                        {"day_id": day.id},
                    )
        for cycle in self.cycles.values():
            for week in cycle.weeks:
                for day_id in week.day_ids:
                    if day_id not in self.days:
                        raise ValidationError(
                            f"Cycle '{cycle.id}' week {week.week_number} "
                            f"references unknown day '{day_id}'",
                            {"cycle_id": cycle.id},
                        )
        for program in self.programs.values():
            self._validate_program(program)

    def _validate_program(self, program: Program) -> None:
        if program.cycle_id not in self.cycles:
            raise ValidationError(
                f"Program '{program.id}' references unknown cycle '{program.cycle_id}'",
                {"program_id": program.id},
            )
        if program.weekly_lookup_id and program.weekly_lookup_id not in self.weekly_lookups:
            raise ValidationError(
                f"Program '{program.id}' references unknown weekly lookup",
                {"program_id": program.id, "weekly_lookup_id": program.weekly_lookup_id},
            )
        if program.daily_lookup_id and program.daily_lookup_id not in self.daily_lookups:
            raise ValidationError(
                f"Program '{program.id}' references unknown daily lookup",
                {"program_id": program.id, "daily_lookup_id": program.daily_lookup_id},
            )
        for link in program.progressions:
            if link.progression_id not in self.progressions:
                raise ValidationError(
                    f"Program '{program.id}' references unknown progression "
                    f"'{link.progression_id}'",
                    {"program_id": program.id},
                )
            if link.lift_id not in self.lifts:
                raise ValidationError(
                    f"Program '{program.id}' links a progression to unknown lift "
                    f"'{link.lift_id}'",
                    {"program_id": program.id},
                )
            if self.lifts[link.lift_id].derives_max_from_parent:
                raise ValidationError(
                    f"Program '{program.id}' links progression '{link.progression_id}' "
                    f"to '{link.lift_id}', whose max is derived from its parent",
                    {"program_id": program.id, "lift_id": link.lift_id},
                )
            if link.prescription_id is not None:
                prescription = self.prescriptions.get(link.prescription_id)
                if prescription is None or prescription.lift_id != link.lift_id:
                    raise ValidationError(
                        f"Program '{program.id}' scopes progression "
                        f"'{link.progression_id}' to prescription "
                        f"'{link.prescription_id}', which is not a '{link.lift_id}' "
                        "prescription",
                        {"program_id": program.id, "prescription_id": link.prescription_id},
                    )

        # Lookup-based prescriptions need the matching table on the program
        for prescription in self.program_prescriptions(program):
            strategy, scheme = prescription.load_strategy, prescription.set_scheme
            needs_weekly = isinstance(strategy, WeeklyLookupLoad) or (
                isinstance(scheme, LookupDrivenSets) and not program.daily_lookup_id
            )
            if needs_weekly and not program.weekly_lookup_id:
                raise ValidationError(
                    f"Prescription '{prescription.id}' needs a weekly lookup but "
                    f"program '{program.id}' has none",
                    {"program_id": program.id, "prescription_id": prescription.id},
                )
            if isinstance(strategy, DailyLookupLoad) and not program.daily_lookup_id:
                raise ValidationError(
                    f"Prescription '{prescription.id}' needs a daily lookup but "
                    f"program '{program.id}' has none",
                    {"program_id": program.id, "prescription_id": prescription.id},
                )

    def program_prescriptions(self, program: Program) -> list[Prescription]:
        """All prescriptions reachable from a program's cycle."""
        seen: dict[str, Prescription] = {}
        for week in self.cycles[program.cycle_id].weeks:
            for day_id in week.day_ids:
                for pid in self.days[day_id].prescription_ids:
                    seen.setdefault(pid, self.prescriptions[pid])
        return list(seen.values())

    def get_program(self, key: str) -> Program:
        """Get a program by id or slug."""
        program = self.programs.get(key)
        if program is None:
            program = next((p for p in self.programs.values() if p.slug == key), None)
        if program is None:
            raise NotFound("Program", key)
        return program

    def get_lift(self, key: str) -> Lift:
        """Get a lift by id or slug."""
        lift = self.lifts.get(key)
        if lift is None:
            lift = next((l for l in self.lifts.values() if l.slug == key), None)
        if lift is None:
            raise NotFound("Lift", key)
        return lift

    def get_progression(self, progression_id: str) -> Progression:
        try:
            return self.progressions[progression_id]
        except KeyError:
            raise NotFound("Progression", progression_id) from None

    def get_cycle(self, program: Program) -> Cycle:
        return self.cycles[program.cycle_id]

    def get_day(self, program: Program, week_number: int, day_index: int) -> Day:
        """Get the training day at a schedule position."""
        week = self.get_cycle(program).get_week(week_number)
        if not 0 <= day_index < week.days_count:
            raise ValidationError(
                f"Day index {day_index} is outside week {week_number}",
                {"program_id": program.id, "week_number": week_number, "day_index": day_index},
            )
        return self.days[week.day_ids[day_index]]

    def weekly_lookup_for(self, program: Program) -> WeeklyLookup | None:
        if program.weekly_lookup_id is None:
            return None
        return self.weekly_lookups[program.weekly_lookup_id]

    def daily_lookup_for(self, program: Program) -> DailyLookup | None:
        if program.daily_lookup_id is None:
            return None
        return self.daily_lookups[program.daily_lookup_id]

    def to_dict(self) -> dict:
        return {
            "lifts": [l.to_dict() for l in self.lifts.values()],
            "prescriptions": [p.to_dict() for p in self.prescriptions.values()],
            "days": [d.to_dict() for d in self.days.values()],
            "cycles": [c.to_dict() for c in self.cycles.values()],
            "programs": [p.to_dict() for p in self.programs.values()],
            "weekly_lookups": [t.to_dict() for t in self.weekly_lookups.values()],
            "daily_lookups": [t.to_dict() for t in self.daily_lookups.values()],
            "progressions": [p.to_dict() for p in self.progressions.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Catalog":
        """Build and validate a catalog from a document.

        Raises:
            ValidationError: If any entry is malformed or references are dangling
        """
        try:
            catalog = cls(
                lifts=_index((Lift.from_dict(d) for d in data.get("lifts", [])), "lift"),
                prescriptions=_index(
                    (Prescription.from_dict(d) for d in data.get("prescriptions", [])),
                    "prescription",
                ),
                days=_index((Day.from_dict(d) for d in data.get("days", [])), "day"),
                cycles=_index((Cycle.from_dict(d) for d in data.get("cycles", [])), "cycle"),
                programs=_index(
                    (Program.from_dict(d) for d in data.get("programs", [])), "program"
                ),
                weekly_lookups=_index(
                    (WeeklyLookup.from_dict(d) for d in data.get("weekly_lookups", [])),
                    "weekly_lookup",
                ),
                daily_lookups=_index(
                    (DailyLookup.from_dict(d) for d in data.get("daily_lookups", [])),
                    "daily_lookup",
                ),
                progressions=_index(
                    (parse_progression(d) for d in data.get("progressions", [])),
                    "progression",
                ),
            )
        except KeyError as e:
            raise ValidationError(
                f"Catalog entry is missing field {e.args[0]!r}", {"field": e.args[0]}
            ) from None
        catalog.validate()
        return catalog
