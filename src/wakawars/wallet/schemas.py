"""Pydantic models for wallet reads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class WalletTransaction(BaseModel):
    id: int
    amount: int
    reason: str
    created_at: datetime
    metadata: dict[str, Any] | None = None


class WalletResponse(BaseModel):
    coins: int
    equipped_skin_id: str | None = None
    transactions: list[WalletTransaction]
