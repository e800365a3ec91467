"""Calendar date keys (YYYY-MM-DD) and ISO week helpers.

Everything here is pure and never raises: bad timezones fall back to UTC
and unparseable keys are handed back unchanged.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _resolve_zone(tz: str | None) -> ZoneInfo | None:
    if not tz or not tz.strip():
        return None
    try:
        return ZoneInfo(tz.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # zone directories such as "America" raise IsADirectoryError
        return None


def is_valid_timezone(tz: str | None) -> bool:
    return _resolve_zone(tz) is not None


def _as_utc(instant: datetime) -> datetime:
    # Naive datetimes are treated as UTC
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def date_key_utc(instant: datetime | None = None) -> str:
    """Render the UTC calendar date of an instant, e.g. '2026-02-22'."""
    if instant is None:
        instant = datetime.now(timezone.utc)
    return _as_utc(instant).date().isoformat()


def date_key_in_zone(instant: datetime, tz: str | None) -> str:
    """Render the calendar date of an instant in an IANA zone, UTC if unknown."""
    zone = _resolve_zone(tz)
    if zone is None:
        return date_key_utc(instant)
    return _as_utc(instant).astimezone(zone).date().isoformat()


def parse_date_key(key: str | None) -> date | None:
    if not key or not _DATE_KEY_RE.match(key):
        return None
    try:
        return date.fromisoformat(key)
    except ValueError:
        return None


def is_valid_date_key(key: str | None) -> bool:
    return parse_date_key(key) is not None


def shift_date_key(key: str, offset_days: int) -> str:
    """Shift a date key by whole days. Unparseable keys come back unchanged."""
    if not key:
        return date_key_utc()
    parsed = parse_date_key(key)
    if parsed is None:
        return key
    return (parsed + timedelta(days=offset_days)).isoformat()


def get_week_iso(value: datetime | date) -> str:
    """Get ISO week string e.g. '2026-W09'. Uses %G-W%V (ISO year + ISO week)."""
    return value.strftime("%G-W%V")


def parse_date_input(value: object) -> datetime | None:
    """Parse a provider date field.

    Bare dates are read as UTC midnight; anything else must be ISO-8601.
    """
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None

    if _DATE_KEY_RE.match(normalized):
        parsed_date = parse_date_key(normalized)
        if parsed_date is None:
            return None
        return datetime(parsed_date.year, parsed_date.month, parsed_date.day, tzinfo=timezone.utc)

    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    return _as_utc(parsed)
