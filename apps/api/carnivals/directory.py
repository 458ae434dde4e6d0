"""
Identity & Club Directory
=========================

Read-only lookups of users, clubs and primary delegates. The ownership and
registration services consume these and never mutate directory rows.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.models import Club, User, UserRole


async def get_user(db: AsyncSession, user_id: UUID) -> Optional[User]:
    return await db.get(User, user_id)


async def get_club(db: AsyncSession, club_id: UUID) -> Optional[Club]:
    return await db.get(Club, club_id)


async def get_primary_delegate(db: AsyncSession, club_id: UUID) -> Optional[User]:
    """
    Active primary delegate of a club.

    When a club has several, the longest-serving one is returned so that
    repeated lookups are stable.
    """
    stmt = (
        select(User)
        .where(
            User.club_id == club_id,
            User.role == UserRole.PRIMARY_DELEGATE,
            User.is_active.is_(True),
        )
        .order_by(User.created_at, User.id)
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
