"""Domain exceptions."""

from __future__ import annotations


class WakaWarsError(Exception):
    """Base class for domain errors."""


class UserNotFoundError(WakaWarsError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InsufficientCoinsError(WakaWarsError):
    def __init__(self, user_id: int, balance: int, amount: int) -> None:
        super().__init__(f"User {user_id} has {balance} coins, needs {amount}")
        self.user_id = user_id
        self.balance = balance
        self.amount = amount
