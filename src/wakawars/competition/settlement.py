"""Daily rank rewards, settled once per user per day.

After each sweep every user's "yesterday" (in their own timezone) is ranked
against their population and the reward for their rank is credited. The
unique (user_id, date_key) constraint on ``daily_reward_settlements`` is
what makes this exactly-once: the settlement row, the balance change and
the ledger entry commit together, and a concurrent or repeated attempt
hits the constraint and is reported as not applied.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wakawars.competition.population import build_population, collect_daily_entries, local_date_key
from wakawars.competition.ranking import compute_leaderboard, rank_to_coins
from wakawars.db.models import DailyRewardSettlement, User
from wakawars.users.service import list_users, require_user
from wakawars.wallet.service import REASON_DAILY_RANK_REWARD, apply_coin_delta

logger = logging.getLogger(__name__)


@dataclass
class SettlementOutcome:
    user_id: int
    date_key: str
    rank: int | None = None
    coins: int = 0
    applied: bool = False


@dataclass
class SettlementSummary:
    attempted: int = 0
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    coins_awarded: int = 0


def previous_date_key(user: User, now: datetime) -> str:
    """Yesterday in the user's stored timezone (UTC when unset or invalid)."""
    return local_date_key(user, now, -1)


async def has_settlement(db: AsyncSession, user_id: int, date_key: str) -> bool:
    result = await db.execute(
        select(DailyRewardSettlement.id).where(
            DailyRewardSettlement.user_id == user_id,
            DailyRewardSettlement.date_key == date_key,
        )
    )
    return result.scalar_one_or_none() is not None


async def settle_user_day(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: int,
    *,
    now: datetime,
    reward_table: Mapping[int, int] | None = None,
) -> SettlementOutcome:
    """Rank one user's yesterday and credit the reward, at most once."""
    async with session_factory() as db:
        user = await require_user(db, user_id)
        date_key = previous_date_key(user, now)

        if await has_settlement(db, user_id, date_key):
            return SettlementOutcome(user_id=user_id, date_key=date_key)

        members = await build_population(db, user)
        entries, _ = await collect_daily_entries(db, members, now, -1)
        board = compute_leaderboard(entries, user_id)
        rank = board.self_entry.rank if board.self_entry is not None else None
        coins = rank_to_coins(rank, reward_table)

        db.add(
            DailyRewardSettlement(
                user_id=user_id,
                date_key=date_key,
                rank=rank,
                coins_awarded=coins,
            )
        )
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.info("Settlement for user %s on %s already recorded", user_id, date_key)
            return SettlementOutcome(user_id=user_id, date_key=date_key, rank=rank, coins=coins)

        if coins > 0:
            await apply_coin_delta(
                db,
                user_id,
                coins,
                REASON_DAILY_RANK_REWARD,
                {"date_key": date_key, "rank": rank},
            )
        await db.commit()

    logger.info("Settled user %s for %s: rank=%s coins=%d", user_id, date_key, rank, coins)
    return SettlementOutcome(user_id=user_id, date_key=date_key, rank=rank, coins=coins, applied=True)


async def settle_previous_day(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    now: datetime,
    reward_table: Mapping[int, int] | None = None,
    on_error: Callable[[BaseException], None] | None = None,
) -> SettlementSummary:
    """Settle yesterday for every user. One user's failure never stops the rest."""
    async with session_factory() as db:
        user_ids = [user.id for user in await list_users(db)]

    summary = SettlementSummary()
    for user_id in user_ids:
        summary.attempted += 1
        try:
            outcome = await settle_user_day(session_factory, user_id, now=now, reward_table=reward_table)
        except Exception as exc:
            summary.failed += 1
            if on_error is not None:
                on_error(exc)
            else:
                logger.exception("Settlement failed for user %s", user_id)
            continue

        if outcome.applied:
            summary.applied += 1
            summary.coins_awarded += outcome.coins
        else:
            summary.skipped += 1
    return summary
