"""Coin balance mutations, each paired with exactly one ledger row."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wakawars.db.models import CoinLedgerEntry, User
from wakawars.errors import InsufficientCoinsError, UserNotFoundError
from wakawars.users.service import get_user
from wakawars.wallet.schemas import WalletResponse, WalletTransaction

logger = logging.getLogger(__name__)

REASON_DAILY_RANK_REWARD = "daily_rank_reward"
REASON_SKIN_PURCHASE = "skin_purchase"


async def apply_coin_delta(
    db: AsyncSession,
    user_id: int,
    amount: int,
    reason: str,
    metadata: dict[str, Any] | None = None,
) -> CoinLedgerEntry:
    """Change a balance and append the matching ledger entry.

    Does not commit; the caller owns the transaction so the balance and the
    ledger row land together. Debits never take a balance below zero.
    """
    if amount == 0:
        raise ValueError("Coin delta must be non-zero")

    stmt = update(User).where(User.id == user_id)
    if amount < 0:
        stmt = stmt.where(User.coin_balance >= -amount)
    result = await db.execute(stmt.values(coin_balance=User.coin_balance + amount))

    if result.rowcount == 0:
        user = await get_user(db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        raise InsufficientCoinsError(user_id, user.coin_balance, -amount)

    entry = CoinLedgerEntry(
        user_id=user_id,
        amount=amount,
        reason=reason,
        entry_metadata=metadata,
    )
    db.add(entry)
    await db.flush()
    return entry


async def get_wallet(db: AsyncSession, user_id: int, limit: int = 20) -> WalletResponse:
    """Balance plus the most recent ledger entries, newest first."""
    user = await get_user(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    result = await db.execute(
        select(CoinLedgerEntry)
        .where(CoinLedgerEntry.user_id == user_id)
        .order_by(CoinLedgerEntry.id.desc())
        .limit(limit)
    )
    return WalletResponse(
        coins=user.coin_balance,
        equipped_skin_id=user.equipped_skin_id,
        transactions=[
            WalletTransaction(
                id=entry.id,
                amount=entry.amount,
                reason=entry.reason,
                created_at=entry.created_at,
                metadata=entry.entry_metadata,
            )
            for entry in result.scalars()
        ],
    )
