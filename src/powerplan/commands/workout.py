"""Workout and session commands."""

import click

from ..db import ProgramStateRepository
from ..engine.resolver import DayResolution
from ..errors import MissingReferenceMax, NotEnrolled
from ..services import EnrollmentService, WorkoutService
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
    format_weight,
    reports_errors,
)
from .enrollment import echo_advance, echo_progressions


def echo_workout(resolution: DayResolution) -> None:
    """Print a resolved workout and its errors."""
    workout = resolution.workout
    click.echo()
    click.echo(
        click.style(
            f"{workout.day_name} (week {workout.coordinate.week_number}, "
            f"day {workout.coordinate.day_position})",
            bold=True,
        )
    )
    for exercise in workout.exercises:
        click.echo()
        click.echo(click.style(exercise.lift_name, fg="cyan"))
        rows = [
            [
                str(s.set_number),
                format_weight(s.weight),
                f"{s.target_reps}+" if s.is_amrap else str(s.target_reps),
                "" if s.is_work_set else "warm-up",
            ]
            for s in exercise.sets
        ]
        click.echo(format_table(["Set", "Weight", "Reps", ""], rows))
        if exercise.notes:
            click.echo(f"  {exercise.notes}")
        if exercise.rest_seconds:
            click.echo(f"  Rest {exercise.rest_seconds}s")

    missing = resolution.missing_maxes()
    if missing:
        click.echo()
        echo_error("Missing maxes:")
        for err in missing:
            click.echo(f"  - {err.lift_id}: {err.kind}")
        click.echo("  Record them with 'powerplan maxes set <user> <lift>'.")
    for item in resolution.errors:
        if not isinstance(item.error, MissingReferenceMax):
            echo_error(f"{item.prescription_id}: {item.error.message}")


@click.command()
@click.argument("user_id")
@click.option("--program", "program_id", help="Program id (default: the user's enrollment)")
@click.option("--week", type=int, help="Week number")
@click.option("--day", type=int, help="Day within the week (1-based)")
@click.pass_context
@reports_errors
@async_command
async def workout(
    ctx: click.Context,
    user_id: str,
    program_id: str | None,
    week: int | None,
    day: int | None,
):
    """Show the resolved workout for a user."""
    ensure_initialized(ctx)

    if program_id is None:
        state = await ProgramStateRepository().get_by_user(user_id)
        if state is None:
            raise NotEnrolled(user_id)
        program_id = state.program_id

    resolution = await WorkoutService().resolve_workout(program_id, user_id, week, day)
    echo_workout(resolution)
    if resolution.errors:
        ctx.exit(1)


@click.group()
def session():
    """Start, finish or abandon a workout session."""
    pass


@session.command("start")
@click.argument("user_id")
@click.pass_context
@reports_errors
@async_command
async def start_session(ctx: click.Context, user_id: str):
    """Open a session at the user's current position."""
    ensure_initialized(ctx)

    started = await EnrollmentService().start_session(user_id)
    echo_success(
        f"Session {started.id} started (week {started.week_number}, day {started.day_index + 1})"
    )


@session.command("finish")
@click.argument("user_id")
@click.option("--lift", "lifts", multiple=True, help="Lift performed (repeatable)")
@click.option("--no-advance", is_flag=True, help="Don't move to the next day")
@click.pass_context
@reports_errors
@async_command
async def finish_session(ctx: click.Context, user_id: str, lifts: tuple[str, ...], no_advance: bool):
    """Complete the open session."""
    ensure_initialized(ctx)

    outcome = await EnrollmentService().finish_session(
        user_id, list(lifts) or None, advance_day=not no_advance
    )
    echo_success(f"Session {outcome.session.id} completed")
    echo_progressions(outcome.progressions)
    if outcome.advance is not None:
        echo_advance(outcome.advance)


@session.command("abandon")
@click.argument("user_id")
@click.pass_context
@reports_errors
@async_command
async def abandon_session(ctx: click.Context, user_id: str):
    """Abandon the open session."""
    ensure_initialized(ctx)

    abandoned = await EnrollmentService().abandon_session(user_id)
    echo_info(f"Session {abandoned.id} abandoned")
