"""Daily reward settlement: exactly-once credit, visibility and population."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from wakawars.competition.settlement import has_settlement, previous_date_key, settle_previous_day, settle_user_day
from wakawars.db.models import CoinLedgerEntry, DailyRewardSettlement
from wakawars.social.service import add_friendship, add_group_member, create_group
from wakawars.stats.service import upsert_daily_stat
from wakawars.users.service import create_user, get_user

YESTERDAY = "2026-02-22"


async def _befriend(db, a: int, b: int) -> None:
    await add_friendship(db, a, b)
    await add_friendship(db, b, a)


async def _seed_trio(session_factory, now, *, mo_visibility: str = "everyone") -> dict[str, int]:
    """amy, ben and mo, all mutual friends, with yesterday's totals 3600/1800/900."""
    async with session_factory() as db:
        amy = await create_user(db, "amy", "key-amy")
        ben = await create_user(db, "ben", "key-ben")
        mo = await create_user(db, "mo", "key-mo", stats_visibility=mo_visibility)
        await _befriend(db, amy.id, ben.id)
        await _befriend(db, amy.id, mo.id)
        await _befriend(db, ben.id, mo.id)
        for user, seconds in ((amy, 3600), (ben, 1800), (mo, 900)):
            await upsert_daily_stat(db, user.id, YESTERDAY, seconds, "ok", now)
        await db.commit()
        return {"amy": amy.id, "ben": ben.id, "mo": mo.id}


async def _balance(session_factory, user_id: int) -> int:
    async with session_factory() as db:
        user = await get_user(db, user_id)
        return user.coin_balance


class TestSettleUserDay:
    """Test one user's settlement."""

    @pytest.mark.asyncio
    async def test_winner_credited_once(self, session_factory, now):
        ids = await _seed_trio(session_factory, now)

        first = await settle_user_day(session_factory, ids["amy"], now=now)
        second = await settle_user_day(session_factory, ids["amy"], now=now)

        assert first.applied
        assert first.date_key == YESTERDAY
        assert first.rank == 1
        assert first.coins == 3
        assert not second.applied
        assert await _balance(session_factory, ids["amy"]) == 3

        async with session_factory() as db:
            ledger = (await db.execute(select(CoinLedgerEntry))).scalars().all()
            assert len(ledger) == 1
            assert ledger[0].reason == "daily_rank_reward"
            assert ledger[0].amount == 3
            assert ledger[0].entry_metadata == {"date_key": YESTERDAY, "rank": 1}
            assert await has_settlement(db, ids["amy"], YESTERDAY)

    @pytest.mark.asyncio
    async def test_unique_violation_means_not_applied(self, session_factory, now):
        """A second writer that misses the up-front check is stopped by the unique constraint."""
        ids = await _seed_trio(session_factory, now)
        first = await settle_user_day(session_factory, ids["amy"], now=now)

        with patch(
            "wakawars.competition.settlement.has_settlement",
            new_callable=AsyncMock,
            return_value=False,
        ):
            second = await settle_user_day(session_factory, ids["amy"], now=now)

        assert first.applied
        assert not second.applied
        assert second.date_key == YESTERDAY
        assert await _balance(session_factory, ids["amy"]) == 3
        async with session_factory() as db:
            ledger = await db.execute(select(func.count(CoinLedgerEntry.id)))
            assert ledger.scalar_one() == 1
            settlements = await db.execute(select(func.count(DailyRewardSettlement.id)))
            assert settlements.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_hidden_member_ranks_as_private(self, session_factory, now):
        # mo has the most time but hides it from everyone
        ids = await _seed_trio(session_factory, now, mo_visibility="no_one")
        async with session_factory() as db:
            await upsert_daily_stat(db, ids["mo"], YESTERDAY, 99999, "ok", now)
            await db.commit()

        amy = await settle_user_day(session_factory, ids["amy"], now=now)
        mo = await settle_user_day(session_factory, ids["mo"], now=now)

        assert amy.rank == 1
        assert mo.rank == 1
        assert mo.coins == 3

    @pytest.mark.asyncio
    async def test_friends_visibility_needs_mutual_edge(self, session_factory, now):
        async with session_factory() as db:
            amy = await create_user(db, "amy", "key-amy")
            ben = await create_user(db, "ben", "key-ben", stats_visibility="friends")
            await add_friendship(db, amy.id, ben.id)  # one-way
            await upsert_daily_stat(db, amy.id, YESTERDAY, 100, "ok", now)
            await upsert_daily_stat(db, ben.id, YESTERDAY, 5000, "ok", now)
            await db.commit()

        outcome = await settle_user_day(session_factory, amy.id, now=now)
        assert outcome.rank == 1

    @pytest.mark.asyncio
    async def test_friends_visibility_through_shared_group(self, session_factory, now):
        async with session_factory() as db:
            amy = await create_user(db, "amy", "key-amy")
            ben = await create_user(db, "ben", "key-ben", stats_visibility="friends")
            group = await create_group(db, ben.id, "night owls")
            await add_group_member(db, group.id, amy.id)
            await upsert_daily_stat(db, amy.id, YESTERDAY, 100, "ok", now)
            await upsert_daily_stat(db, ben.id, YESTERDAY, 5000, "ok", now)
            await db.commit()

        outcome = await settle_user_day(session_factory, amy.id, now=now)
        assert outcome.rank == 2
        assert outcome.coins == 2

    @pytest.mark.asyncio
    async def test_missing_stats_unranked(self, session_factory, now):
        async with session_factory() as db:
            amy = await create_user(db, "amy", "key-amy")
            await db.commit()

        outcome = await settle_user_day(session_factory, amy.id, now=now)
        assert outcome.applied
        assert outcome.rank is None
        assert outcome.coins == 0
        assert await _balance(session_factory, amy.id) == 0
        async with session_factory() as db:
            count = await db.execute(select(func.count(CoinLedgerEntry.id)))
            assert count.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_non_competing_user_not_ranked(self, session_factory, now):
        async with session_factory() as db:
            amy = await create_user(db, "amy", "key-amy", is_competing=False)
            await upsert_daily_stat(db, amy.id, YESTERDAY, 3600, "ok", now)
            await db.commit()

        outcome = await settle_user_day(session_factory, amy.id, now=now)
        assert outcome.rank is None
        assert outcome.coins == 0

    @pytest.mark.asyncio
    async def test_yesterday_in_users_own_zone(self, session_factory):
        now = datetime(2026, 2, 23, 20, 0, 0, tzinfo=timezone.utc)  # 05:00 on the 24th in Tokyo
        async with session_factory() as db:
            kenji = await create_user(db, "kenji", "key-k", wakatime_timezone="Asia/Tokyo")
            await upsert_daily_stat(db, kenji.id, "2026-02-23", 3600, "ok", now)
            await db.commit()

        assert previous_date_key(kenji, now) == "2026-02-23"
        outcome = await settle_user_day(session_factory, kenji.id, now=now)
        assert outcome.date_key == "2026-02-23"
        assert outcome.rank == 1


class TestSettlePreviousDay:
    """Test the all-users pass."""

    @pytest.mark.asyncio
    async def test_every_user_settled_once(self, session_factory, now):
        ids = await _seed_trio(session_factory, now)

        first = await settle_previous_day(session_factory, now=now)
        second = await settle_previous_day(session_factory, now=now)

        assert (first.attempted, first.applied, first.skipped, first.failed) == (3, 3, 0, 0)
        assert first.coins_awarded == 6
        assert (second.applied, second.skipped) == (0, 3)
        assert await _balance(session_factory, ids["amy"]) == 3
        assert await _balance(session_factory, ids["ben"]) == 2
        assert await _balance(session_factory, ids["mo"]) == 1

        async with session_factory() as db:
            count = await db.execute(select(func.count(DailyRewardSettlement.id)))
            assert count.scalar_one() == 3

    @pytest.mark.asyncio
    async def test_custom_reward_table(self, session_factory, now):
        ids = await _seed_trio(session_factory, now)
        summary = await settle_previous_day(session_factory, now=now, reward_table={1: 10})
        assert summary.coins_awarded == 10
        assert await _balance(session_factory, ids["amy"]) == 10
        assert await _balance(session_factory, ids["ben"]) == 0
