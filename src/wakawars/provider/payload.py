"""Lenient decoding of WakaTime JSON payloads.

WakaTime responses are nested and loosely typed (numbers sometimes arrive as
strings, keys come and go between endpoints). Everything is decoded into
pydantic models whose fields default to zero or empty, so a missing or
malformed field never raises.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, model_validator

BREAKDOWN_KEYS = ("editors", "languages", "projects")


def as_object(value: Any) -> dict[str, Any] | None:
    if isinstance(value, dict):
        return value
    return None


def as_number(value: Any) -> float | None:
    """Read a finite number from an int, float or numeric string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def as_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def first_number(data: dict[str, Any] | None, *keys: str) -> float | None:
    if data is None:
        return None
    for key in keys:
        number = as_number(data.get(key))
        if number is not None:
            return number
    return None


def first_text(data: dict[str, Any] | None, *keys: str) -> str | None:
    if data is None:
        return None
    for key in keys:
        text = as_text(data.get(key))
        if text is not None:
            return text
    return None


class NamedDuration(BaseModel):
    """One row of an editors/languages/projects breakdown."""

    name: str = "unknown"
    total_seconds: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _pick_fields(cls, value: Any) -> Any:
        if isinstance(value, NamedDuration):
            return value
        data = as_object(value) or {}
        seconds = first_number(data, "total_seconds", "seconds", "total")
        return {
            "name": as_text(data.get("name")) or "unknown",
            "total_seconds": seconds if seconds is not None else 0.0,
        }


def _named_list(value: Any) -> list[NamedDuration]:
    if not isinstance(value, list):
        return []
    return [NamedDuration.model_validate(entry) for entry in value if isinstance(entry, dict)]


def _day_seconds(value: Any) -> list[float]:
    if not isinstance(value, list):
        return []
    seconds: list[float] = []
    for entry in value:
        data = as_object(entry)
        if data is None:
            continue
        total = first_number(data, "total_seconds", "total")
        if total is None:
            total = first_number(as_object(data.get("grand_total")), "total_seconds")
        total = total if total is not None else 0.0
        if total >= 0:
            seconds.append(total)
    return seconds


def active_breakdown(entries: list[NamedDuration]) -> list[tuple[str, float]]:
    """Sum seconds per distinct name and keep names with positive time.

    Payloads may list the same name more than once. Order follows first
    appearance.
    """
    totals: dict[str, float] = {}
    for entry in entries:
        if entry.total_seconds > 0:
            totals[entry.name] = totals.get(entry.name, 0.0) + entry.total_seconds
    return list(totals.items())


class StatsPayload(BaseModel):
    """Decoded view of a status_bar/today or stats/<range> response."""

    total_seconds: float = 0.0
    daily_average_seconds: float = 0.0
    range_date: str | None = None
    range_timezone: str | None = None
    range_end: str | None = None
    editors: list[NamedDuration] = []
    languages: list[NamedDuration] = []
    projects: list[NamedDuration] = []
    day_seconds: list[float] = []

    def breakdown(self, key: str) -> list[NamedDuration]:
        if key not in BREAKDOWN_KEYS:
            raise ValueError(f"Unknown breakdown: {key}")
        return getattr(self, key)

    @classmethod
    def _common(cls, raw: Any) -> tuple[dict[str, Any], dict[str, Any] | None, dict[str, Any]]:
        data = as_object(as_object(raw).get("data")) if as_object(raw) else None
        data = data or {}
        range_obj = as_object(data.get("range"))
        fields: dict[str, Any] = {
            "editors": _named_list(data.get("editors")),
            "languages": _named_list(data.get("languages")),
            "projects": _named_list(data.get("projects")),
            "day_seconds": _day_seconds(data.get("days")),
        }
        return data, range_obj, fields

    @classmethod
    def from_daily(cls, raw: Any) -> StatsPayload:
        data, range_obj, fields = cls._common(raw)
        total = first_number(as_object(data.get("grand_total")), "total_seconds")
        if total is None:
            total = first_number(data, "total_seconds")
        return cls(
            total_seconds=total or 0.0,
            range_date=first_text(range_obj, "date"),
            range_timezone=first_text(range_obj, "timezone") or first_text(data, "timezone"),
            range_end=first_text(range_obj, "end", "end_date", "endDate"),
            **fields,
        )

    @classmethod
    def from_weekly(cls, raw: Any) -> StatsPayload:
        data, range_obj, fields = cls._common(raw)
        total = first_number(data, "total_seconds")
        if total is None:
            total = first_number(as_object(data.get("grand_total")), "total_seconds")
        average = first_number(data, "daily_average", "daily_average_seconds")
        return cls(
            total_seconds=total or 0.0,
            daily_average_seconds=average or 0.0,
            range_timezone=first_text(data, "timezone") or first_text(range_obj, "timezone"),
            range_end=(
                first_text(range_obj, "end", "end_date", "endDate")
                or first_text(data, "end", "end_date", "endDate")
            ),
            **fields,
        )
