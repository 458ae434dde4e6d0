"""
Consistency Jobs
================

Batch repair of derived carnival data:
- registrations:recount   reset ``current_registrations`` to the number of
                          active, approved registrations
- fees:recalculate        re-price every active registration
- carnivals:unclaimed     imported carnivals with no owning club
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from rich.console import Console
from rich.table import Table
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.models import Carnival
from carnivals.services.fees import recalculate_carnival_fees
from carnivals.services.registrations import recount_registrations
from worker.database import get_session

console = Console()


@dataclass
class RecountChange:
    carnival_id: UUID
    title: str
    before: int
    after: int


async def _select_carnivals(session: AsyncSession, carnival_id: Optional[UUID]) -> List[Carnival]:
    query = select(Carnival).where(Carnival.is_active.is_(True))
    if carnival_id is not None:
        query = query.where(Carnival.id == carnival_id)
    result = await session.execute(query.order_by(Carnival.event_date, Carnival.title))
    return list(result.scalars().all())


async def recount_all(session: AsyncSession, carnival_id: Optional[UUID] = None) -> List[RecountChange]:
    """Recount approved registrations; returns the carnivals whose counter drifted."""
    changes = []
    for carnival in await _select_carnivals(session, carnival_id):
        before = carnival.current_registrations
        after = await recount_registrations(session, carnival)
        if before != after:
            changes.append(RecountChange(carnival.id, carnival.title, before, after))
    await session.flush()
    return changes


async def recalculate_all_fees(session: AsyncSession, carnival_id: Optional[UUID] = None) -> int:
    """Re-price active registrations; returns how many amounts changed."""
    changed = 0
    for carnival in await _select_carnivals(session, carnival_id):
        repriced = await recalculate_carnival_fees(session, carnival)
        if repriced:
            # A host registration may have been auto-approved
            await recount_registrations(session, carnival)
        changed += repriced
    await session.flush()
    return changed


async def list_unclaimed(session: AsyncSession, state: Optional[str] = None) -> List[Carnival]:
    query = (
        select(Carnival)
        .where(Carnival.is_active.is_(True))
        .where(Carnival.is_manually_entered.is_(False))
        .where(Carnival.external_sync_timestamp.is_not(None))
        .where(Carnival.host_club_id.is_(None))
        .where(Carnival.owner_user_id.is_(None))
    )
    if state:
        query = query.where(Carnival.state == state.upper())
    result = await session.execute(query.order_by(Carnival.event_date, Carnival.title))
    return list(result.scalars().all())


# =============================================================================
# RUNNERS
# =============================================================================

async def _recount(carnival_id: Optional[UUID]) -> List[RecountChange]:
    async with get_session() as session:
        return await recount_all(session, carnival_id)


def run_recount(carnival_id: Optional[UUID] = None) -> Dict[str, Any]:
    console.print("[bold blue]Recounting approved registrations...[/bold blue]")
    changes = asyncio.run(_recount(carnival_id))

    if not changes:
        console.print("[green]All registration counters are consistent.[/green]")
        return {"corrected": 0}

    table = Table(title="Corrected Counters")
    table.add_column("Carnival", style="cyan")
    table.add_column("Before", justify="right", style="red")
    table.add_column("After", justify="right", style="green")
    for change in changes:
        table.add_row(change.title, str(change.before), str(change.after))
    console.print(table)

    return {"corrected": len(changes)}


async def _recalculate(carnival_id: Optional[UUID]) -> int:
    async with get_session() as session:
        return await recalculate_all_fees(session, carnival_id)


def run_fee_recalculation(carnival_id: Optional[UUID] = None) -> Dict[str, Any]:
    console.print("[bold blue]Recalculating registration fees...[/bold blue]")
    changed = asyncio.run(_recalculate(carnival_id))
    console.print(f"[bold green]Fee recalculation complete![/bold green] {changed} registration(s) updated")
    return {"updated": changed}


async def _unclaimed(state: Optional[str]) -> List[Dict[str, Any]]:
    async with get_session() as session:
        carnivals = await list_unclaimed(session, state)
        return [
            {
                "id": str(c.id),
                "title": c.title,
                "event_date": c.event_date.isoformat() if c.event_date else "",
                "state": c.state or "",
                "contact": c.organiser_contact_email or "",
            }
            for c in carnivals
        ]


def run_unclaimed_report(state: Optional[str] = None) -> List[Dict[str, Any]]:
    rows = asyncio.run(_unclaimed(state))

    if not rows:
        console.print("[yellow]No unclaimed carnivals found.[/yellow]")
        return rows

    table = Table(title=f"Unclaimed Carnivals ({len(rows)})")
    table.add_column("Date", width=10)
    table.add_column("Title", style="cyan")
    table.add_column("State", width=5)
    table.add_column("Feed Contact")
    for row in rows:
        table.add_row(row["event_date"], row["title"], row["state"], row["contact"])
    console.print(table)

    return rows
