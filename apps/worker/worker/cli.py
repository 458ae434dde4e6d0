"""
Carnival Hub Worker CLI
=======================

Command-line interface for running worker jobs.

Usage:
    python -m worker.cli <command> [options]

Commands:
    feed:import FILE               Import carnivals from a feed export
    registrations:recount          Repair approved-registration counters
    fees:recalculate               Re-price active registrations
    carnivals:unclaimed            List imported carnivals nobody has claimed

Examples:
    python -m worker.cli feed:import exports/carnivals.json
    python -m worker.cli registrations:recount
    python -m worker.cli fees:recalculate --carnival-id 6f1c...
    python -m worker.cli carnivals:unclaimed --state NSW
"""

from typing import Optional
from uuid import UUID

import click
from rich.console import Console

from carnivals import __version__

console = Console()


def parse_uuid(value: Optional[str]) -> Optional[UUID]:
    """Parse an optional UUID option."""
    if value is None:
        return None
    try:
        return UUID(value)
    except ValueError:
        raise click.BadParameter(f"Invalid carnival id: {value}")


@click.group()
@click.version_option(version=__version__)
def cli():
    """Carnival Hub Worker - Background jobs for carnival data."""
    pass


# =============================================================================
# FEED COMMANDS
# =============================================================================

@cli.command("feed:import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def cmd_feed_import(path: str):
    """Import or refresh carnivals from an external feed export (JSON)."""
    from worker.jobs.feed import run_feed_import

    console.print("\n[bold]Carnival Hub Worker - Feed Import[/bold]\n")
    run_feed_import(path)


# =============================================================================
# CONSISTENCY COMMANDS
# =============================================================================

@cli.command("registrations:recount")
@click.option("--carnival-id", type=str, default=None, help="Recount a single carnival only")
def cmd_registrations_recount(carnival_id: Optional[str]):
    """Reset current_registrations to the number of approved registrations."""
    from worker.jobs.consistency import run_recount

    console.print("\n[bold]Carnival Hub Worker - Registration Recount[/bold]\n")
    run_recount(carnival_id=parse_uuid(carnival_id))


@cli.command("fees:recalculate")
@click.option("--carnival-id", type=str, default=None, help="Recalculate a single carnival only")
def cmd_fees_recalculate(carnival_id: Optional[str]):
    """Recompute payment amounts from the current fee structure and rosters."""
    from worker.jobs.consistency import run_fee_recalculation

    console.print("\n[bold]Carnival Hub Worker - Fee Recalculation[/bold]\n")
    run_fee_recalculation(carnival_id=parse_uuid(carnival_id))


@cli.command("carnivals:unclaimed")
@click.option("--state", type=str, default=None, help="Filter by state code (e.g. NSW)")
def cmd_carnivals_unclaimed(state: Optional[str]):
    """List imported carnivals that no club has claimed."""
    from worker.jobs.consistency import run_unclaimed_report

    console.print("\n[bold]Carnival Hub Worker - Unclaimed Carnivals[/bold]\n")
    run_unclaimed_report(state=state)


if __name__ == "__main__":
    cli()
