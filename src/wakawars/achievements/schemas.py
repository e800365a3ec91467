"""Pydantic models for achievement reads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AchievementUnlock(BaseModel):
    """Grants of one achievement for one user, collapsed."""

    achievement_id: str
    count: int
    first_awarded_at: datetime
    last_awarded_at: datetime


class AchievementDisplay(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    count: int
    first_awarded_at: datetime
    last_awarded_at: datetime


class AchievementBoardItem(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    count: int
    unlocked: bool
    first_awarded_at: datetime | None = None
    last_awarded_at: datetime | None = None
