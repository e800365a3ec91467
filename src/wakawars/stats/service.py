"""Persistence of synced daily/weekly stats and the provider call log."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wakawars.db.models import STAT_STATUS_VALUES, DailyStat, ProviderLog, WeeklyStat
from wakawars.db.upsert import upsert_stmt


def _check_status(status: str) -> None:
    if status not in STAT_STATUS_VALUES:
        raise ValueError(f"Unknown stat status: {status}")


async def upsert_daily_stat(
    db: AsyncSession,
    user_id: int,
    date_key: str,
    total_seconds: float,
    status: str,
    fetched_at: datetime,
    error: str | None = None,
) -> None:
    _check_status(status)
    stmt = upsert_stmt(
        db,
        DailyStat,
        {
            "user_id": user_id,
            "date_key": date_key,
            "total_seconds": total_seconds,
            "status": status,
            "error": error,
            "fetched_at": fetched_at,
        },
        index_elements=["user_id", "date_key"],
        update_columns=["total_seconds", "status", "error", "fetched_at"],
    )
    await db.execute(stmt)


async def upsert_weekly_stat(
    db: AsyncSession,
    user_id: int,
    range_key: str,
    total_seconds: float,
    daily_average_seconds: float,
    status: str,
    fetched_at: datetime,
    error: str | None = None,
) -> None:
    _check_status(status)
    stmt = upsert_stmt(
        db,
        WeeklyStat,
        {
            "user_id": user_id,
            "range_key": range_key,
            "total_seconds": total_seconds,
            "daily_average_seconds": daily_average_seconds,
            "status": status,
            "error": error,
            "fetched_at": fetched_at,
        },
        index_elements=["user_id", "range_key"],
        update_columns=["total_seconds", "daily_average_seconds", "status", "error", "fetched_at"],
    )
    await db.execute(stmt)


async def get_daily_stat(db: AsyncSession, user_id: int, date_key: str) -> DailyStat | None:
    result = await db.execute(
        select(DailyStat).where(DailyStat.user_id == user_id, DailyStat.date_key == date_key)
    )
    return result.scalar_one_or_none()


async def get_daily_stats_for_keys(
    db: AsyncSession,
    keys: dict[int, str],
) -> dict[int, DailyStat]:
    """Load each user's stat for that user's own date key.

    ``keys`` maps user id -> date key; members in different zones can ask
    for different days in one call.
    """
    if not keys:
        return {}
    result = await db.execute(
        select(DailyStat).where(
            DailyStat.user_id.in_(list(keys)),
            DailyStat.date_key.in_(set(keys.values())),
        )
    )
    return {
        stat.user_id: stat
        for stat in result.scalars()
        if keys.get(stat.user_id) == stat.date_key
    }


async def get_weekly_stats(
    db: AsyncSession,
    user_ids: set[int] | list[int],
    range_key: str,
) -> dict[int, WeeklyStat]:
    if not user_ids:
        return {}
    result = await db.execute(
        select(WeeklyStat).where(
            WeeklyStat.user_id.in_(list(user_ids)),
            WeeklyStat.range_key == range_key,
        )
    )
    return {stat.user_id: stat for stat in result.scalars()}


async def create_provider_log(
    db: AsyncSession,
    *,
    user_id: int,
    endpoint: str,
    range_key: str | None,
    status_code: int | None,
    ok: bool,
    payload: dict[str, Any] | None,
    error: str | None,
    fetched_at: datetime,
    provider: str = "wakatime",
) -> ProviderLog:
    log = ProviderLog(
        provider=provider,
        user_id=user_id,
        endpoint=endpoint,
        range_key=range_key,
        status_code=status_code,
        ok=ok,
        payload=payload,
        error=error,
        fetched_at=fetched_at,
    )
    db.add(log)
    await db.flush()
    return log
