"""Friend edges, groups and population membership."""

import pytest

from wakawars.competition.population import build_population
from wakawars.social.service import (
    add_friendship,
    add_group_member,
    create_group,
    get_friend_ids,
    get_group_peer_ids,
    get_incoming_friend_ids,
    remove_friendship,
)
from wakawars.stats.service import upsert_daily_stat
from wakawars.users.service import create_user


class TestFriendships:
    @pytest.mark.asyncio
    async def test_directed_edges(self, db_session):
        amy = await create_user(db_session, "amy")
        ben = await create_user(db_session, "ben")

        assert await add_friendship(db_session, amy.id, ben.id)
        assert not await add_friendship(db_session, amy.id, ben.id)
        assert not await add_friendship(db_session, amy.id, amy.id)

        assert await get_friend_ids(db_session, amy.id) == {ben.id}
        assert await get_friend_ids(db_session, ben.id) == set()
        assert await get_incoming_friend_ids(db_session, ben.id, {amy.id}) == {amy.id}
        assert await get_incoming_friend_ids(db_session, amy.id, {ben.id}) == set()

        await remove_friendship(db_session, amy.id, ben.id)
        assert await get_friend_ids(db_session, amy.id) == set()


class TestGroups:
    @pytest.mark.asyncio
    async def test_peers_include_owner_and_members(self, db_session):
        owner = await create_user(db_session, "owner")
        amy = await create_user(db_session, "amy")
        ben = await create_user(db_session, "ben")
        group = await create_group(db_session, owner.id, " squad ")
        assert group.name == "squad"
        assert await add_group_member(db_session, group.id, amy.id)
        assert not await add_group_member(db_session, group.id, amy.id)
        await add_group_member(db_session, group.id, ben.id)

        assert await get_group_peer_ids(db_session, amy.id) == {owner.id, ben.id}
        assert await get_group_peer_ids(db_session, owner.id) == {amy.id, ben.id}


class TestBuildPopulation:
    @pytest.mark.asyncio
    async def test_population_order_and_competing_filter(self, db_session, now):
        amy = await create_user(db_session, "amy")
        ben = await create_user(db_session, "ben")
        retired = await create_user(db_session, "retired", is_competing=False)
        await add_friendship(db_session, amy.id, retired.id)
        await add_friendship(db_session, amy.id, ben.id)

        members = await build_population(db_session, amy)

        assert [m.user.username for m in members] == ["amy", "ben"]
        assert all(m.visible for m in members)

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, db_session, now):
        amy = await create_user(db_session, "amy")
        with pytest.raises(ValueError):
            await upsert_daily_stat(db_session, amy.id, "2026-02-22", 1, "maybe", now)
