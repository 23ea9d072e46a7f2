"""Workout resolution service."""

import logging
from datetime import datetime
from pathlib import Path

from ..db.repositories import (
    CatalogRepository,
    ProgramStateRepository,
    ProgressionRepository,
    ReferenceMaxRepository,
)
from ..engine.loads import Coordinate
from ..engine.resolver import DayResolution, resolve_day
from ..engine.sets import stage_scheme
from ..errors import NotEnrolled, ValidationError
from ..models.catalog import Catalog
from ..models.prescription import SetScheme
from ..models.program import Program
from ..models.progression import StageProgression

log = logging.getLogger(__name__)


class WorkoutService:
    """Resolves a user's workouts from catalog data and their maxes."""

    def __init__(self, db_path: Path | None = None):
        self.catalog_repo = CatalogRepository(db_path)
        self.max_repo = ReferenceMaxRepository(db_path)
        self.state_repo = ProgramStateRepository(db_path)
        self.progression_repo = ProgressionRepository(db_path)

    async def resolve_workout(
        self,
        program_id: str,
        user_id: str,
        week_number: int | None = None,
        day_position: int | None = None,
        as_of: datetime | None = None,
    ) -> DayResolution:
        """Resolve the workout for a schedule position.

        Without an explicit position the user's current enrollment position
        is used.

        Args:
            program_id: Program id or slug
            user_id: The user
            week_number: 1-based week number
            day_position: 1-based day within the week
            as_of: Resolve against maxes effective at this date

        Returns:
            The workout plus every prescription that failed to resolve

        Raises:
            NotEnrolled: If no position is given and the user isn't enrolled
            NotFound: If the program doesn't exist
            ValidationError: If the position is outside the program
        """
        catalog = await self.catalog_repo.load()
        program = catalog.get_program(program_id)

        cycle_iteration = 1
        if week_number is None or day_position is None:
            state = await self.state_repo.get_by_user(user_id)
            if state is None or state.program_id != program.id:
                raise NotEnrolled(user_id)
            week_number = week_number or state.current_week
            day_position = day_position or state.day_index + 1
            cycle_iteration = state.current_cycle_iteration

        if day_position < 1:
            raise ValidationError("Day position must be at least 1", {"day_position": day_position})
        day = catalog.get_day(program, week_number, day_position - 1)
        coordinate = Coordinate(
            week_number=week_number,
            day_position=day_position,
            day_slug=day.slug,
            cycle_iteration=cycle_iteration,
        )

        book = await self.max_repo.get_book(user_id, catalog.lifts, as_of)
        overrides = await self.stage_overrides(catalog, program, user_id)
        resolution = resolve_day(catalog, program, day, book, coordinate, overrides)
        if resolution.errors:
            log.info(
                "Workout %s/%s for %s resolved with %d errors",
                program.id, day.id, user_id, len(resolution.errors),
            )
        return resolution

    async def stage_overrides(
        self, catalog: Catalog, program: Program, user_id: str
    ) -> dict[str, SetScheme]:
        """Get the active STAGE scheme for each staged slot in a program.

        Links scoped to a prescription are keyed by prescription id, the
        rest by lift id. The first link for a key wins.
        """
        overrides: dict[str, SetScheme] = {}
        for link in program.progressions_for():
            rule = catalog.progressions[link.progression_id]
            key = link.prescription_id or link.lift_id
            if not isinstance(rule, StageProgression) or key in overrides:
                continue
            state = await self.progression_repo.get_stage_state(user_id, link.lift_id, rule.id)
            overrides[key] = stage_scheme(rule.stage(state.current_stage))
        return overrides
