"""ORM models for users, social graph, synced stats, achievements and coins.

All tables are created by the Alembic migration in alembic/versions. The
JSON and primary-key column types carry SQLite variants so the same models
back the in-memory test database.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wakawars.db.base import Base, BigIntPK, JSONType

STATS_VISIBILITY_VALUES = ("everyone", "friends", "no_one")
STAT_STATUS_VALUES = ("ok", "private", "not_found", "error")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    api_key: Mapped[str] = mapped_column(String(256), nullable=False, default="", server_default="")
    wakatime_timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    stats_visibility: Mapped[str] = mapped_column(
        String(16), nullable=False, default="everyone", server_default="everyone",
    )
    is_competing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    coin_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    equipped_skin_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )

    friendships: Mapped[list[Friendship]] = relationship(
        "Friendship", back_populates="user", foreign_keys="Friendship.user_id",
    )


# ---------------------------------------------------------------------------
# Social graph
# ---------------------------------------------------------------------------


class Friendship(Base):
    """Directed friend edge. Visibility needs the reverse edge as well."""

    __tablename__ = "friendships"
    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friendships_user_friend"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    friend_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )

    user: Mapped[User] = relationship("User", back_populates="friendships", foreign_keys=[user_id])
    friend: Mapped[User] = relationship("User", foreign_keys=[friend_id])


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )

    members: Mapped[list[GroupMember]] = relationship("GroupMember", back_populates="group")


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )

    group: Mapped[Group] = relationship("Group", back_populates="members")


# ---------------------------------------------------------------------------
# Synced stats
# ---------------------------------------------------------------------------


class DailyStat(Base):
    """One row per user per local calendar day."""

    __tablename__ = "daily_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "date_key", name="uq_daily_stats_user_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    total_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class WeeklyStat(Base):
    """One row per user per rolling range (e.g. last_7_days)."""

    __tablename__ = "weekly_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "range_key", name="uq_weekly_stats_user_range"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    range_key: Mapped[str] = mapped_column(String(32), nullable=False)
    total_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    daily_average_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ProviderLog(Base):
    """Raw provider call record, kept for debugging sync issues."""

    __tablename__ = "provider_logs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    endpoint: Mapped[str] = mapped_column(String(64), nullable=False)
    range_key: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ok: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class AchievementGrant(Base):
    """A rule firing for one context. Same id across many context keys is a repeat count."""

    __tablename__ = "achievement_grants"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "achievement_id", "context_kind", "context_key",
            name="uq_achievement_grants_context",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    context_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    context_key: Mapped[str] = mapped_column(String(64), nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    grant_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)


# ---------------------------------------------------------------------------
# Coins
# ---------------------------------------------------------------------------


class DailyRewardSettlement(Base):
    """Existence of a row means the day is settled for that user."""

    __tablename__ = "daily_reward_settlements"
    __table_args__ = (
        UniqueConstraint("user_id", "date_key", name="uq_daily_reward_settlements_user_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    coins_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )


class CoinLedgerEntry(Base):
    """Append-only coin movements. Sum of amounts equals users.coin_balance."""

    __tablename__ = "coin_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    entry_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )
