"""Initialize project command."""

from pathlib import Path

import click

from ..config import get_data_dir
from ..data import load_sample_catalog
from ..db import CatalogRepository, get_db_path, init_db
from .base import async_command, echo_info, echo_success, reports_errors
from .catalog import read_catalog_file


@click.command()
@click.option(
    "--catalog",
    "catalog_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Program catalog (JSON) to load after initializing",
)
@click.option(
    "--sample",
    is_flag=True,
    help="Load the bundled sample catalog (5/3/1, GZCLP, Texas Method)",
)
@reports_errors
@async_command
async def init(catalog_file: Path | None, sample: bool):
    """Initialize the powerplan data directory and database.

    This creates the data directory and the SQLite schema. Pass --catalog
    to load program definitions in the same step, or --sample to start
    from the bundled programs.
    """
    data_dir = get_data_dir()
    db_path = get_db_path(data_dir)

    echo_info(f"Initializing powerplan in {data_dir}")

    await init_db(db_path)
    echo_success("Database initialized")

    catalog = None
    if catalog_file is not None:
        catalog = read_catalog_file(catalog_file)
    elif sample:
        catalog = load_sample_catalog()

    if catalog is not None:
        count = await CatalogRepository(db_path).save(catalog)
        echo_success(f"Catalog loaded ({count} entries, {len(catalog.programs)} programs)")

    click.echo()
    click.echo("powerplan is ready to use!")
    click.echo()
    click.echo("Next steps:")
    if catalog is None:
        click.echo("  1. Load a program catalog:")
        click.echo("     powerplan catalog load programs.json")
        click.echo()
    click.echo("  2. Record your maxes and enroll:")
    click.echo("     powerplan maxes set alice squat")
    click.echo("     powerplan enroll alice wendler-531")
    click.echo()
    click.echo("  3. See today's workout:")
    click.echo("     powerplan workout alice")
