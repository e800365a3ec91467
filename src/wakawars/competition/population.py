"""Who competes with whom, and whose numbers a viewer may see.

A viewer's population is themself, everyone they added as a friend, and the
owners and members of every group they own or belong to, limited to users
who are competing. Visibility is decided per member before ranking:

- the viewer always sees themself;
- ``everyone`` is visible to all;
- ``friends`` is visible only with a mutual friendship (both edges exist)
  or a shared group;
- ``no_one`` is visible to nobody else.

Hidden members stay in the population and rank as ``private``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from wakawars.competition.schemas import StatEntry
from wakawars.db.models import DailyStat, User, WeeklyStat
from wakawars.social.service import get_friend_ids, get_group_peer_ids, get_incoming_friend_ids
from wakawars.stats.date_keys import date_key_in_zone, shift_date_key
from wakawars.stats.service import get_daily_stats_for_keys, get_weekly_stats
from wakawars.users.service import get_users_by_ids

NO_STATS_ERROR = "No stats recorded"


@dataclass
class PopulationMember:
    user: User
    visible: bool


def can_view_stats(
    viewer_id: int,
    member: User,
    *,
    is_mutual_friend: bool,
    shares_group: bool,
) -> bool:
    if member.id == viewer_id:
        return True
    if member.stats_visibility == "everyone":
        return True
    if member.stats_visibility == "friends":
        return is_mutual_friend or shares_group
    return False


async def build_population(db: AsyncSession, viewer: User) -> list[PopulationMember]:
    """Competing members of the viewer's circle, in ascending user id order."""
    friend_ids = await get_friend_ids(db, viewer.id)
    peer_ids = await get_group_peer_ids(db, viewer.id)
    candidate_ids = (friend_ids | peer_ids) - {viewer.id}
    incoming_ids = await get_incoming_friend_ids(db, viewer.id, candidate_ids)
    users = await get_users_by_ids(db, candidate_ids | {viewer.id})

    members: list[PopulationMember] = []
    for user_id in sorted(candidate_ids | {viewer.id}):
        user = users.get(user_id)
        if user is None or not user.is_competing:
            continue
        visible = can_view_stats(
            viewer.id,
            user,
            is_mutual_friend=user_id in friend_ids and user_id in incoming_ids,
            shares_group=user_id in peer_ids,
        )
        members.append(PopulationMember(user=user, visible=visible))
    return members


def local_date_key(user: User, now: datetime, offset_days: int = 0) -> str:
    """The user's own calendar day, shifted by ``offset_days``."""
    return shift_date_key(date_key_in_zone(now, user.wakatime_timezone), offset_days)


def _hidden_entry(user: User) -> StatEntry:
    return StatEntry(
        user_id=user.id,
        username=user.username,
        status="private",
        total_seconds=0.0,
        coin_balance=user.coin_balance,
        equipped_skin_id=user.equipped_skin_id,
    )


def _missing_entry(user: User) -> StatEntry:
    return StatEntry(
        user_id=user.id,
        username=user.username,
        status="error",
        total_seconds=0.0,
        error=NO_STATS_ERROR,
        coin_balance=user.coin_balance,
        equipped_skin_id=user.equipped_skin_id,
    )


async def collect_daily_entries(
    db: AsyncSession,
    members: list[PopulationMember],
    now: datetime,
    offset_days: int = 0,
) -> tuple[list[StatEntry], datetime | None]:
    """Each member's daily stat for their own local day (+offset).

    Returns the entries in population order and the newest fetch time.
    """
    keys = {m.user.id: local_date_key(m.user, now, offset_days) for m in members if m.visible}
    stats: dict[int, DailyStat] = await get_daily_stats_for_keys(db, keys)

    entries: list[StatEntry] = []
    updated_at: datetime | None = None
    for member in members:
        user = member.user
        if not member.visible:
            entries.append(_hidden_entry(user))
            continue
        stat = stats.get(user.id)
        if stat is None:
            entries.append(_missing_entry(user))
            continue
        if updated_at is None or stat.fetched_at > updated_at:
            updated_at = stat.fetched_at
        entries.append(
            StatEntry(
                user_id=user.id,
                username=user.username,
                status=stat.status,
                total_seconds=stat.total_seconds,
                error=stat.error,
                coin_balance=user.coin_balance,
                equipped_skin_id=user.equipped_skin_id,
            )
        )
    return entries, updated_at


async def collect_weekly_entries(
    db: AsyncSession,
    members: list[PopulationMember],
    range_key: str,
) -> tuple[list[StatEntry], datetime | None]:
    visible_ids = {m.user.id for m in members if m.visible}
    stats: dict[int, WeeklyStat] = await get_weekly_stats(db, visible_ids, range_key)

    entries: list[StatEntry] = []
    updated_at: datetime | None = None
    for member in members:
        user = member.user
        if not member.visible:
            entries.append(_hidden_entry(user))
            continue
        stat = stats.get(user.id)
        if stat is None:
            entries.append(_missing_entry(user))
            continue
        if updated_at is None or stat.fetched_at > updated_at:
            updated_at = stat.fetched_at
        entries.append(
            StatEntry(
                user_id=user.id,
                username=user.username,
                status=stat.status,
                total_seconds=stat.total_seconds,
                daily_average_seconds=stat.daily_average_seconds,
                error=stat.error,
                coin_balance=user.coin_balance,
                equipped_skin_id=user.equipped_skin_id,
            )
        )
    return entries, updated_at
