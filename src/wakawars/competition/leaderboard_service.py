"""Live today/weekly leaderboards built from persisted stats."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from wakawars.competition.population import (
    build_population,
    collect_daily_entries,
    collect_weekly_entries,
    local_date_key,
)
from wakawars.competition.ranking import compute_leaderboard
from wakawars.competition.schemas import LeaderboardResponse, WeeklyLeaderboardResponse
from wakawars.users.service import require_user

DEFAULT_WEEKLY_RANGE = "last_7_days"


async def get_today_leaderboard(
    db: AsyncSession,
    viewer_id: int,
    now: datetime | None = None,
) -> LeaderboardResponse:
    """Today's standings for the viewer's circle, each member on their own local day."""
    if now is None:
        now = datetime.now(timezone.utc)
    viewer = await require_user(db, viewer_id)
    members = await build_population(db, viewer)
    entries, updated_at = await collect_daily_entries(db, members, now)
    board = compute_leaderboard(entries, viewer.id)
    return LeaderboardResponse(
        date=local_date_key(viewer, now),
        updated_at=updated_at,
        entries=board.entries,
        self_entry=board.self_entry,
    )


async def get_weekly_leaderboard(
    db: AsyncSession,
    viewer_id: int,
    range_key: str = DEFAULT_WEEKLY_RANGE,
) -> WeeklyLeaderboardResponse:
    viewer = await require_user(db, viewer_id)
    members = await build_population(db, viewer)
    entries, updated_at = await collect_weekly_entries(db, members, range_key)
    board = compute_leaderboard(entries, viewer.id)
    return WeeklyLeaderboardResponse(
        range=range_key,
        updated_at=updated_at,
        entries=board.entries,
        self_entry=board.self_entry,
    )
