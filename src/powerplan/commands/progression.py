"""Progression commands."""

from datetime import datetime

import click

from ..models.progression import TriggerContext, TriggerEvent, TriggerType
from ..services import ProgressionService
from .base import (
    async_command,
    echo_info,
    ensure_initialized,
    format_table,
    format_weight,
    reports_errors,
)
from .enrollment import echo_progressions


@click.group()
def progression():
    """Trigger progressions and review their history."""
    pass


@progression.command("trigger")
@click.argument("user_id")
@click.argument("progression_id")
@click.argument("lift_id")
@click.option(
    "--type",
    "trigger_type",
    type=click.Choice([t.value for t in TriggerType], case_sensitive=False),
    required=True,
    help="Trigger type",
)
@click.option("--amrap-reps", type=int, help="Reps achieved on the AMRAP set")
@click.option("--reps", "reps_performed", type=int, help="Reps performed on the set")
@click.option("--increment", type=float, help="Override the rule's increment")
@click.option(
    "--at",
    "timestamp",
    type=click.DateTime(),
    help="Event timestamp; replaying the same timestamp is a no-op",
)
@click.option("--force", is_flag=True, help="Apply even if this event was already applied")
@click.pass_context
@reports_errors
@async_command
async def trigger(
    ctx: click.Context,
    user_id: str,
    progression_id: str,
    lift_id: str,
    trigger_type: str,
    amrap_reps: int | None,
    reps_performed: int | None,
    increment: float | None,
    timestamp: datetime | None,
    force: bool,
):
    """Apply one progression rule to one lift."""
    ensure_initialized(ctx)

    event = TriggerEvent(
        type=TriggerType(trigger_type.upper()),
        timestamp=timestamp or datetime.now(),
        context=TriggerContext(amrap_reps=amrap_reps, reps_performed=reps_performed),
    )
    result = await ProgressionService().trigger_progression(
        user_id, progression_id, lift_id, event, increment_override=increment, force=force
    )
    echo_progressions([result])
    if result.error is not None:
        ctx.exit(1)


@progression.command("log-set")
@click.argument("user_id")
@click.argument("lift_id")
@click.argument("weight", type=float)
@click.argument("target_reps", type=int)
@click.argument("reps_performed", type=int)
@click.option("--amrap", is_flag=True, help="The set was AMRAP")
@click.option("--set-number", type=int, default=1, help="Set number in the exercise")
@click.option("--prescription", "prescription_id", help="Prescription the set belongs to")
@click.pass_context
@reports_errors
@async_command
async def log_set(
    ctx: click.Context,
    user_id: str,
    lift_id: str,
    weight: float,
    target_reps: int,
    reps_performed: int,
    amrap: bool,
    set_number: int,
    prescription_id: str | None,
):
    """Record a performed set; short sets count as failures."""
    ensure_initialized(ctx)

    outcome = await ProgressionService().record_set(
        user_id,
        lift_id,
        weight,
        target_reps,
        reps_performed,
        is_amrap=amrap,
        set_number=set_number,
        prescription_id=prescription_id,
    )
    echo_info(
        f"Logged {format_weight(weight)} x {reps_performed} "
        f"({'made' if outcome.logged_set.succeeded else 'missed'} {target_reps})"
    )
    if outcome.estimated_one_rm is not None:
        echo_info(f"Estimated 1RM: {outcome.estimated_one_rm:.1f}")
    echo_progressions(outcome.results)


@progression.command("history")
@click.argument("user_id")
@click.option("--lift", "lift_id", help="Only this lift")
@click.pass_context
@reports_errors
@async_command
async def history(ctx: click.Context, user_id: str, lift_id: str | None):
    """Show applied progressions, newest first."""
    ensure_initialized(ctx)

    logs = await ProgressionService().history(user_id, lift_id)
    if not logs:
        echo_info("No progressions applied yet")
        return
    rows = [
        [
            entry.applied_at.strftime("%Y-%m-%d %H:%M"),
            entry.lift_id,
            entry.progression_id,
            entry.trigger_type.value,
            entry.action.value,
            f"{format_weight(entry.previous_value)} -> {format_weight(entry.new_value)}",
        ]
        for entry in logs
    ]
    click.echo(format_table(["When", "Lift", "Rule", "Trigger", "Action", "Max"], rows))
