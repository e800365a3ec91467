"""Achievement grants with per-context idempotency, plus aggregation for display.

A grant is keyed by (user, achievement, context kind, context key). Daily
rules use the calendar date as the key and weekly rules use
``<range_key>:<ISO week>``, so the same achievement earned on many days or
weeks shows up as a repeat count while re-running one evaluation only
refreshes the existing row.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wakawars.achievements.catalog import (
    ACHIEVEMENT_CATALOG,
    ACHIEVEMENTS_BY_ID,
    CONTEXT_DAILY,
    CONTEXT_WEEKLY,
    DAILY_RULES,
    WEEKLY_RULES,
)
from wakawars.achievements.rules import (
    DEFAULT_WEEKEND_DAYS,
    build_day_facts,
    build_week_facts,
    evaluate_rules,
)
from wakawars.achievements.schemas import AchievementBoardItem, AchievementDisplay, AchievementUnlock
from wakawars.db.models import AchievementGrant
from wakawars.db.upsert import upsert_stmt
from wakawars.provider.payload import StatsPayload
from wakawars.stats.date_keys import get_week_iso, parse_date_input

logger = logging.getLogger(__name__)


async def grant_achievement(
    db: AsyncSession,
    user_id: int,
    achievement_id: str,
    context_kind: str,
    context_key: str,
    awarded_at: datetime,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Insert a grant, or refresh awarded_at/metadata if it already exists."""
    stmt = upsert_stmt(
        db,
        AchievementGrant,
        {
            "user_id": user_id,
            "achievement_id": achievement_id,
            "context_kind": context_kind,
            "context_key": context_key,
            "awarded_at": awarded_at,
            "metadata": metadata,
        },
        index_elements=["user_id", "achievement_id", "context_kind", "context_key"],
        update_columns=["awarded_at", "metadata"],
    )
    await db.execute(stmt)


def resolve_week_context_key(
    range_key: str,
    payload: dict[str, Any] | None,
    fallback: datetime,
) -> str:
    """``<range_key>:<ISO week of the range end>``.

    The week comes from the range WakaTime reports, not the sync time, so a
    late sync still lands in the week the data describes.
    """
    decoded = StatsPayload.from_weekly(payload or {})
    end_date = parse_date_input(decoded.range_end) or fallback
    return f"{range_key}:{get_week_iso(end_date)}"


async def award_daily_achievements(
    db: AsyncSession,
    *,
    user_id: int,
    date_key: str,
    status: str,
    total_seconds: float,
    payload: dict[str, Any] | None,
    fetched_at: datetime,
    weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
) -> list[str]:
    """Evaluate daily rules for one user-day. Returns the granted ids."""
    if status != "ok":
        return []

    facts = build_day_facts(total_seconds, date_key, payload, weekend_days)
    granted: list[str] = []
    for rule, metadata in evaluate_rules(DAILY_RULES, facts):
        await grant_achievement(
            db,
            user_id,
            rule.id,
            CONTEXT_DAILY,
            date_key,
            fetched_at,
            {**metadata, "date_key": date_key},
        )
        granted.append(rule.id)
    return granted


async def award_weekly_achievements(
    db: AsyncSession,
    *,
    user_id: int,
    range_key: str,
    status: str,
    total_seconds: float,
    daily_average_seconds: float,
    payload: dict[str, Any] | None,
    fetched_at: datetime,
) -> list[str]:
    """Evaluate weekly rules for one user-range. Returns the granted ids."""
    if status != "ok":
        return []

    context_key = resolve_week_context_key(range_key, payload, fetched_at)
    facts = build_week_facts(total_seconds, daily_average_seconds, payload)
    granted: list[str] = []
    for rule, metadata in evaluate_rules(WEEKLY_RULES, facts):
        await grant_achievement(
            db,
            user_id,
            rule.id,
            CONTEXT_WEEKLY,
            context_key,
            fetched_at,
            {**metadata, "range_key": range_key, "week_context_key": context_key},
        )
        granted.append(rule.id)
    return granted


async def list_achievement_unlocks(db: AsyncSession, user_id: int) -> list[AchievementUnlock]:
    """Grants grouped by achievement: count plus first/last award time."""
    result = await db.execute(
        select(
            AchievementGrant.achievement_id,
            func.count(AchievementGrant.id).label("count"),
            func.min(AchievementGrant.awarded_at).label("first_awarded_at"),
            func.max(AchievementGrant.awarded_at).label("last_awarded_at"),
        )
        .where(AchievementGrant.user_id == user_id)
        .group_by(AchievementGrant.achievement_id)
        .order_by(func.max(AchievementGrant.awarded_at).desc())
    )
    return [
        AchievementUnlock(
            achievement_id=row.achievement_id,
            count=row.count,
            first_awarded_at=row.first_awarded_at,
            last_awarded_at=row.last_awarded_at,
        )
        for row in result
    ]


def to_achievement_display(unlocks: list[AchievementUnlock]) -> list[AchievementDisplay]:
    """Unlocked achievements only; ids no longer in the catalog are dropped."""
    display = []
    for unlock in unlocks:
        rule = ACHIEVEMENTS_BY_ID.get(unlock.achievement_id)
        if rule is None:
            continue
        display.append(
            AchievementDisplay(
                id=rule.id,
                title=rule.title,
                description=rule.description,
                icon=rule.icon,
                count=unlock.count,
                first_awarded_at=unlock.first_awarded_at,
                last_awarded_at=unlock.last_awarded_at,
            )
        )
    return display


def to_achievement_board(unlocks: list[AchievementUnlock]) -> list[AchievementBoardItem]:
    """Whole catalog in order, each marked locked or unlocked."""
    by_id = {unlock.achievement_id: unlock for unlock in unlocks}
    board = []
    for rule in ACHIEVEMENT_CATALOG:
        unlock = by_id.get(rule.id)
        board.append(
            AchievementBoardItem(
                id=rule.id,
                title=rule.title,
                description=rule.description,
                icon=rule.icon,
                count=unlock.count if unlock else 0,
                unlocked=unlock is not None,
                first_awarded_at=unlock.first_awarded_at if unlock else None,
                last_awarded_at=unlock.last_awarded_at if unlock else None,
            )
        )
    return board
