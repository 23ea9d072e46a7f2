"""Enrollment and schedule commands."""

import click

from ..engine.statemachine import AdvanceKind, Machine, transition
from ..services import EnrollmentService
from ..services.enrollment import AdvanceOutcome
from ..services.progression import ProgressionResult
from .base import (
    async_command,
    echo_info,
    echo_success,
    echo_warning,
    ensure_initialized,
    format_weight,
    reports_errors,
)


def echo_progressions(results: list[ProgressionResult]) -> None:
    """Print progression results, one per line."""
    for result in results:
        label = f"{result.progression_id} / {result.lift_id}"
        if result.applied:
            if result.delta:
                echo_success(
                    f"{label}: {format_weight(result.previous_value)} -> "
                    f"{format_weight(result.new_value)} ({result.reason})"
                )
            else:
                echo_success(f"{label}: {result.reason}")
        elif result.error is not None:
            echo_warning(f"{label}: {result.reason}")
        else:
            echo_info(f"{label}: skipped ({result.reason})")


def echo_advance(outcome: AdvanceOutcome) -> None:
    state = outcome.state
    if outcome.advance.week_completed:
        echo_success("Week completed")
    if outcome.advance.cycle_completed:
        echo_success(
            f"Cycle {state.current_cycle_iteration} completed. "
            "Run 'powerplan advance <user> --cycle' to start the next one."
        )
    echo_progressions(outcome.progressions)
    echo_info(f"Now at {state.get_position_display()} ({state.enrollment_status.value})")


@click.command()
@click.argument("user_id")
@click.argument("program")
@click.option("--meet-date", type=click.DateTime(formats=["%Y-%m-%d"]), help="Competition date")
@click.pass_context
@reports_errors
@async_command
async def enroll(ctx: click.Context, user_id: str, program: str, meet_date):
    """Enroll a user in a program."""
    ensure_initialized(ctx)

    state = await EnrollmentService().enroll(
        user_id, program, meet_date.date() if meet_date else None
    )
    echo_success(f"{user_id} enrolled in {state.program_id}")


@click.command()
@click.argument("user_id")
@click.option("--week", "kind", flag_value=AdvanceKind.WEEK.value, help="Complete the current week")
@click.option("--cycle", "kind", flag_value=AdvanceKind.CYCLE.value, help="Start the next cycle")
@click.option("--no-triggers", is_flag=True, help="Don't fire week/cycle progressions")
@click.pass_context
@reports_errors
@async_command
async def advance(ctx: click.Context, user_id: str, kind: str | None, no_triggers: bool):
    """Advance a user's schedule by one day (default), a week, or to the next cycle."""
    ensure_initialized(ctx)

    outcome = await EnrollmentService().advance_state(
        user_id, kind or AdvanceKind.DAY.value, fire_triggers=not no_triggers
    )
    echo_advance(outcome)


@click.command()
@click.argument("user_id")
@click.pass_context
@reports_errors
@async_command
async def status(ctx: click.Context, user_id: str):
    """Show a user's enrollment."""
    ensure_initialized(ctx)

    state = await EnrollmentService().get_state(user_id)
    click.echo()
    click.echo(click.style(f"{user_id} in {state.program_id}", bold=True))
    click.echo(f"  Position:    {state.get_position_display()}")
    click.echo(f"  Enrollment:  {state.enrollment_status.value}")
    click.echo(f"  Cycle:       {state.cycle_status.value}")
    click.echo(f"  Week:        {state.week_status.value}")
    click.echo(f"  Cycles done: {state.cycles_since_start}")
    if state.rotation is not None:
        click.echo(f"  Rotation:    {state.rotation.position + 1} of {state.rotation.length}")
    if state.meet is not None:
        click.echo(f"  Meet:        {state.meet.meet_date} ({state.meet.days_out()} days out)")


@click.command("quit")
@click.argument("user_id")
@click.confirmation_option(prompt="Quit the program? This cannot be undone.")
@click.pass_context
@reports_errors
@async_command
async def quit_program(ctx: click.Context, user_id: str):
    """Quit the current program."""
    ensure_initialized(ctx)

    state = await EnrollmentService().quit(user_id)
    echo_success(f"{user_id} quit {state.program_id}")


@click.command("transition")
@click.argument(
    "machine", type=click.Choice([m.value for m in Machine], case_sensitive=False)
)
@click.argument("current")
@click.argument("target")
@reports_errors
def check_transition(machine: str, current: str, target: str):
    """Check whether a state machine allows CURRENT -> TARGET."""
    result = transition(machine.lower(), current.upper(), target.upper())
    echo_success(f"{machine.lower()}: {current.upper()} -> {result.value}")
