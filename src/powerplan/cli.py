"""CLI entry point for powerplan."""

import logging

import click

from .commands import (
    advance,
    catalog,
    check_transition,
    enroll,
    init,
    maxes,
    progression,
    quit_program,
    serve,
    session,
    status,
    workout,
)
from .config import get_log_level


@click.group()
@click.version_option(version="0.1.0", prog_name="powerplan")
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr")
def main(verbose: bool):
    """powerplan: strength program engine.

    Resolves percentage-based workouts from program definitions and moves
    training maxes forward as sessions, weeks and cycles are completed.

    Example usage:

        # Initialize and load programs
        powerplan init --catalog programs.json

        # Record a training max and enroll
        powerplan maxes set alice squat 315
        powerplan enroll alice wendler-531

        # Train
        powerplan workout alice
        powerplan session start alice
        powerplan session finish alice
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register commands
main.add_command(init)
main.add_command(catalog)
main.add_command(maxes)
main.add_command(enroll)
main.add_command(status)
main.add_command(advance)
main.add_command(quit_program)
main.add_command(workout)
main.add_command(session)
main.add_command(progression)
main.add_command(check_transition)
main.add_command(serve)


def run():
    """Run the CLI."""
    main()


if __name__ == "__main__":
    run()
