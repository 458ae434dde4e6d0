"""
External Event Feed Import
==========================

Upserts carnivals from an exported feed file (JSON array of records).

CONTRACT:
1. New records become carnivals with ``is_manually_entered=False``, an
   ``external_sync_timestamp`` and no owner or host club.
2. Existing imported records get their descriptive fields and sync
   timestamp refreshed. Ownership columns are never touched.
3. While a carnival is claimed its contact details and fees belong to the
   claiming club and are left alone.
4. Manually entered carnivals are never modified.

Run with: python -m worker.cli feed:import carnivals.json
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.models import Carnival, utcnow
from carnivals.services.fees import recalculate_carnival_fees
from carnivals.services.guards import Unowned, ownership_state
from worker.database import get_session

console = Console()


class FeedCarnival(BaseModel):
    """One carnival as published by the external feed."""
    external_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    event_date: Optional[date] = None
    location: Optional[str] = None
    state: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    team_registration_fee: Optional[Decimal] = Field(None, ge=0)
    per_player_fee: Optional[Decimal] = Field(None, ge=0)
    max_teams: Optional[int] = Field(None, ge=1)
    is_active: bool = True


@dataclass
class FeedImportSummary:
    created: int = 0
    updated: int = 0
    skipped_manual: int = 0
    invalid: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped_manual": self.skipped_manual,
            "invalid": self.invalid,
        }


def parse_feed(raw: bytes, summary: FeedImportSummary) -> List[FeedCarnival]:
    """Validate feed records, counting (not raising on) malformed ones."""
    payload = orjson.loads(raw)
    if not isinstance(payload, list):
        raise ValueError("Feed file must contain a JSON array of carnival records")

    records = []
    for index, item in enumerate(payload):
        try:
            records.append(FeedCarnival.model_validate(item))
        except ValidationError as e:
            summary.invalid += 1
            summary.errors.append(f"record {index}: {e.errors()[0]['msg']}")
    return records


def _apply_contact(carnival: Carnival, record: FeedCarnival) -> None:
    carnival.organiser_contact_name = record.contact_name
    carnival.organiser_contact_email = record.contact_email
    carnival.organiser_contact_phone = record.contact_phone


async def _refresh_fees(session: AsyncSession, carnival: Carnival, record: FeedCarnival) -> None:
    changed = False
    if record.team_registration_fee is not None and record.team_registration_fee != carnival.team_registration_fee:
        carnival.team_registration_fee = record.team_registration_fee
        changed = True
    if record.per_player_fee is not None and record.per_player_fee != carnival.per_player_fee:
        carnival.per_player_fee = record.per_player_fee
        changed = True
    if changed:
        await recalculate_carnival_fees(session, carnival)


async def import_feed_records(
    session: AsyncSession,
    records: List[FeedCarnival],
    synced_at: Optional[datetime] = None,
    summary: Optional[FeedImportSummary] = None,
) -> FeedImportSummary:
    """Upsert feed records into ``carnivals``. The caller commits."""
    synced_at = synced_at or utcnow()
    summary = summary or FeedImportSummary()

    for record in records:
        result = await session.execute(
            select(Carnival).where(Carnival.external_import_id == record.external_id)
        )
        carnival = result.scalar_one_or_none()

        if carnival is None:
            carnival = Carnival(
                title=record.title,
                event_date=record.event_date,
                location=record.location,
                state=record.state,
                is_manually_entered=False,
                external_import_id=record.external_id,
                external_sync_timestamp=synced_at,
                team_registration_fee=record.team_registration_fee or Decimal("0.00"),
                per_player_fee=record.per_player_fee or Decimal("0.00"),
                max_teams=record.max_teams,
                is_active=record.is_active,
            )
            _apply_contact(carnival, record)
            session.add(carnival)
            summary.created += 1
            continue

        if carnival.is_manually_entered:
            summary.skipped_manual += 1
            continue

        carnival.title = record.title
        carnival.event_date = record.event_date
        carnival.location = record.location
        carnival.state = record.state
        carnival.max_teams = record.max_teams
        carnival.is_active = record.is_active
        carnival.external_sync_timestamp = synced_at

        if isinstance(ownership_state(carnival), Unowned):
            _apply_contact(carnival, record)
            await _refresh_fees(session, carnival, record)
        summary.updated += 1

    await session.flush()
    return summary


async def _run(path: Path) -> FeedImportSummary:
    summary = FeedImportSummary()
    records = parse_feed(path.read_bytes(), summary)
    async with get_session() as session:
        await import_feed_records(session, records, summary=summary)
    return summary


def run_feed_import(path: str) -> Dict[str, Any]:
    """
    Import a feed export file.

    Args:
        path: JSON file containing an array of carnival records

    Returns:
        dict with import counts
    """
    feed_path = Path(path)
    console.print(f"[bold blue]Importing carnivals from {feed_path}...[/bold blue]")

    summary = asyncio.run(_run(feed_path))

    for error in summary.errors:
        console.print(f"  [yellow]Skipped {error}[/yellow]")

    console.print("\n[bold green]Feed import complete![/bold green]")
    console.print("\n[bold]Summary:[/bold]")
    for key, count in summary.as_dict().items():
        console.print(f"  • {key}: {count}")

    return summary.as_dict()
