"""User record access for sync and settlement."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wakawars.db.models import STATS_VISIBILITY_VALUES, User
from wakawars.errors import UserNotFoundError

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def require_user(db: AsyncSession, user_id: int) -> User:
    user = await get_user(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def get_users_by_ids(db: AsyncSession, user_ids: list[int] | set[int]) -> dict[int, User]:
    """Batch-load users keyed by id."""
    if not user_ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(list(user_ids))))
    return {u.id: u for u in result.scalars()}


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars())


async def list_syncable_users(db: AsyncSession) -> list[User]:
    """Users that have a WakaTime API key configured."""
    result = await db.execute(select(User).where(User.api_key != "").order_by(User.id))
    return [u for u in result.scalars() if u.api_key.strip()]


async def create_user(
    db: AsyncSession,
    username: str,
    api_key: str = "",
    *,
    stats_visibility: str = "everyone",
    is_competing: bool = True,
    wakatime_timezone: str | None = None,
) -> User:
    if stats_visibility not in STATS_VISIBILITY_VALUES:
        raise ValueError(f"Unknown stats visibility: {stats_visibility}")
    user = User(
        username=username.strip(),
        api_key=api_key.strip(),
        stats_visibility=stats_visibility,
        is_competing=is_competing,
        wakatime_timezone=wakatime_timezone,
        coin_balance=0,
    )
    db.add(user)
    await db.flush()
    return user


async def update_timezone(db: AsyncSession, user: User, timezone: str) -> bool:
    """Store the zone WakaTime reported. Returns True if it changed."""
    if user.wakatime_timezone == timezone:
        return False
    logger.info("User %s timezone %s -> %s", user.id, user.wakatime_timezone, timezone)
    user.wakatime_timezone = timezone
    await db.flush()
    return True
