"""Reference max commands."""

from datetime import datetime

import click
import questionary
from questionary import Style

from ..db import CatalogRepository, ReferenceMaxRepository
from ..models.lift import MaxKind, ReferenceMax
from .base import (
    async_command,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
    format_weight,
    reports_errors,
)

custom_style = Style(
    [
        ("qmark", "fg:#673ab7 bold"),
        ("question", "bold"),
        ("answer", "fg:#f44336 bold"),
        ("pointer", "fg:#673ab7 bold"),
        ("highlighted", "fg:#673ab7 bold"),
    ]
)


def _validate_weight(text: str) -> bool | str:
    try:
        return float(text) > 0 or "Enter a positive weight"
    except ValueError:
        return "Enter a number"


async def prompt_max(lift_name: str, kind: MaxKind) -> float | None:
    """Ask for a max value interactively."""
    answer = await questionary.text(
        f"{lift_name} {kind.value.replace('_', ' ').lower()}:",
        validate=_validate_weight,
        style=custom_style,
    ).ask_async()
    return float(answer) if answer else None


@click.group()
def maxes():
    """Record and list reference maxes."""
    pass


@maxes.command("set")
@click.argument("user_id")
@click.argument("lift")
@click.argument("value", type=float, required=False)
@click.option(
    "--kind",
    type=click.Choice([k.value for k in MaxKind], case_sensitive=False),
    default=MaxKind.TRAINING_MAX.value,
    help="Kind of max (default: TRAINING_MAX)",
)
@click.option("--reps", type=int, help="Rep count for N_REP_MAX")
@click.option(
    "--date",
    "effective_date",
    type=click.DateTime(),
    help="Effective date (default: now)",
)
@click.pass_context
@reports_errors
@async_command
async def set_max(
    ctx: click.Context,
    user_id: str,
    lift: str,
    value: float | None,
    kind: str,
    reps: int | None,
    effective_date: datetime | None,
):
    """Record a max for a lift. Prompts for the value when it is omitted.

    Maxes are never overwritten; the newest one is used.
    """
    ensure_initialized(ctx)

    catalog = await CatalogRepository().load()
    target = catalog.get_lift(lift)
    max_kind = MaxKind(kind.upper())

    target.require_own_max()

    if value is None:
        value = await prompt_max(target.name, max_kind)
        if value is None:
            echo_info("Cancelled")
            return

    reference_max = ReferenceMax(
        user_id=user_id,
        lift_id=target.id,
        kind=max_kind,
        value=value,
        reps=reps,
        effective_date=effective_date or datetime.now(),
    )
    await ReferenceMaxRepository().add(reference_max)
    echo_success(f"{target.name} {max_kind.value}: {format_weight(value)}")


@maxes.command("list")
@click.argument("user_id")
@click.option("--history", is_flag=True, help="Show every recorded max")
@click.pass_context
@reports_errors
@async_command
async def list_maxes(ctx: click.Context, user_id: str, history: bool):
    """Show a user's current maxes."""
    ensure_initialized(ctx)

    catalog = await CatalogRepository().load()
    rows_in = await ReferenceMaxRepository().list_for_user(user_id)
    if not rows_in:
        echo_info(f"No maxes recorded for {user_id}")
        return

    if not history:
        latest: dict[tuple, ReferenceMax] = {}
        for row in rows_in:
            latest[(row.lift_id, row.kind, row.reps)] = row
        rows_in = list(latest.values())

    rows = []
    for row in rows_in:
        name = catalog.lifts[row.lift_id].name if row.lift_id in catalog.lifts else row.lift_id
        kind = f"{row.reps}RM" if row.kind == MaxKind.N_REP_MAX else row.kind.value
        rows.append([name, kind, format_weight(row.value), row.effective_date.strftime("%Y-%m-%d")])
    click.echo(format_table(["Lift", "Kind", "Value", "Effective"], rows))
