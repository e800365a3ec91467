"""Friend edges and groups: the social graph leaderboards are scoped to."""

from __future__ import annotations

import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wakawars.db.models import Friendship, Group, GroupMember

logger = logging.getLogger(__name__)


async def add_friendship(db: AsyncSession, user_id: int, friend_id: int) -> bool:
    """Add a directed edge user -> friend. Returns False for self or duplicate edges."""
    if user_id == friend_id:
        return False
    existing = await db.execute(
        select(Friendship.id).where(
            Friendship.user_id == user_id,
            Friendship.friend_id == friend_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(Friendship(user_id=user_id, friend_id=friend_id))
    await db.flush()
    return True


async def remove_friendship(db: AsyncSession, user_id: int, friend_id: int) -> None:
    await db.execute(
        delete(Friendship).where(
            Friendship.user_id == user_id,
            Friendship.friend_id == friend_id,
        )
    )


async def get_friend_ids(db: AsyncSession, user_id: int) -> set[int]:
    """Users this user has added (outgoing edges)."""
    result = await db.execute(select(Friendship.friend_id).where(Friendship.user_id == user_id))
    return set(result.scalars())


async def get_incoming_friend_ids(
    db: AsyncSession,
    user_id: int,
    candidate_ids: set[int],
) -> set[int]:
    """Which of ``candidate_ids`` have added this user back."""
    if not candidate_ids:
        return set()
    result = await db.execute(
        select(Friendship.user_id).where(
            Friendship.friend_id == user_id,
            Friendship.user_id.in_(list(candidate_ids)),
        )
    )
    return set(result.scalars())


async def create_group(db: AsyncSession, owner_id: int, name: str) -> Group:
    group = Group(name=name.strip(), owner_id=owner_id)
    db.add(group)
    await db.flush()
    return group


async def add_group_member(db: AsyncSession, group_id: int, user_id: int) -> bool:
    existing = await db.execute(
        select(GroupMember.id).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(GroupMember(group_id=group_id, user_id=user_id))
    await db.flush()
    return True


async def get_group_ids(db: AsyncSession, user_id: int) -> set[int]:
    """Groups the user owns or belongs to."""
    member_of = select(GroupMember.group_id).where(GroupMember.user_id == user_id)
    result = await db.execute(
        select(Group.id).where(or_(Group.owner_id == user_id, Group.id.in_(member_of)))
    )
    return set(result.scalars())


async def get_group_peer_ids(db: AsyncSession, user_id: int) -> set[int]:
    """Owners and members of every group the user owns or belongs to, minus the user."""
    group_ids = await get_group_ids(db, user_id)
    if not group_ids:
        return set()

    owners = await db.execute(select(Group.owner_id).where(Group.id.in_(list(group_ids))))
    members = await db.execute(
        select(GroupMember.user_id).where(GroupMember.group_id.in_(list(group_ids)))
    )
    peers = set(owners.scalars()) | set(members.scalars())
    peers.discard(user_id)
    return peers
