"""Pydantic models for leaderboard entries and responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class StatEntry(BaseModel):
    """One user's stat as it enters ranking."""

    user_id: int
    username: str
    status: str
    total_seconds: float = 0.0
    daily_average_seconds: float | None = None
    error: str | None = None
    coin_balance: int | None = None
    equipped_skin_id: str | None = None


class LeaderboardEntry(StatEntry):
    rank: int | None = None
    delta_seconds: float = 0.0
    is_self: bool = False


class LeaderboardResult(BaseModel):
    entries: list[LeaderboardEntry]
    self_entry: LeaderboardEntry | None = None


class LeaderboardResponse(BaseModel):
    date: str
    updated_at: datetime | None = None
    entries: list[LeaderboardEntry]
    self_entry: LeaderboardEntry | None = None


class WeeklyLeaderboardResponse(BaseModel):
    range: str
    updated_at: datetime | None = None
    entries: list[LeaderboardEntry]
    self_entry: LeaderboardEntry | None = None
