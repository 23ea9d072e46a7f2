"""Catalog management commands."""

import json
from pathlib import Path

import click

from ..db import CatalogRepository
from ..errors import ValidationError
from ..models.catalog import Catalog
from .base import (
    async_command,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
    reports_errors,
)


def read_catalog_file(path: Path) -> Catalog:
    """Read and validate a catalog document.

    Raises:
        ValidationError: If the file isn't valid JSON or the catalog is malformed
    """
    try:
        document = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}") from None
    return Catalog.from_dict(document)


@click.group()
def catalog():
    """Load and inspect program definitions."""
    pass


@catalog.command("load")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
@reports_errors
@async_command
async def load_catalog(ctx: click.Context, path: Path):
    """Validate and load a catalog file, replacing the stored catalog."""
    ensure_initialized(ctx)

    loaded = read_catalog_file(path)
    count = await CatalogRepository().save(loaded)
    echo_success(f"Loaded {count} catalog entries from {path}")


@catalog.command("show")
@click.pass_context
@reports_errors
@async_command
async def show_catalog(ctx: click.Context):
    """List programs and lifts in the stored catalog."""
    ensure_initialized(ctx)

    stored = await CatalogRepository().load()
    if not stored.programs:
        echo_info("No programs loaded. Run 'powerplan catalog load <file>'.")
        return

    click.echo()
    click.echo(click.style("Programs", bold=True))
    rows = []
    for program in stored.programs.values():
        cycle = stored.get_cycle(program)
        rows.append([
            program.id,
            program.name,
            str(cycle.length),
            str(len(program.progressions)),
        ])
    click.echo(format_table(["ID", "Name", "Weeks", "Progressions"], rows))

    click.echo()
    click.echo(click.style("Lifts", bold=True))
    rows = [
        [lift.id, lift.name, lift.parent_lift_id or "-", "yes" if lift.is_competition_lift else ""]
        for lift in stored.lifts.values()
    ]
    click.echo(format_table(["ID", "Name", "Parent", "Competition"], rows))
