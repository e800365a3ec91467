"""WakaTime stats client with a short TTL cache and stale-on-error fallback.

Every server response (ok, private, not_found, error) is cached per key for
``ttl_seconds``. Transport failures never reach the cache: they fall back to
the last cached result for the key, flagged ``from_cache`` with the new
``network_error`` attached, so a provider blip shows slightly stale numbers
instead of a failure.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from wakawars.provider.payload import StatsPayload
from wakawars.stats.date_keys import date_key_in_zone

logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://wakatime.com/api/v1"
DEFAULT_TTL_SECONDS = 2 * 60
DEFAULT_TIMEOUT_SECONDS = 10.0

DAILY_ENDPOINT = "status_bar/today"
WEEKLY_ENDPOINT = "stats"

_PRIVATE_404_RE = re.compile(r"private|unauthorized|forbidden", re.IGNORECASE)
_MAX_ERROR_LENGTH = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProviderResult:
    """Outcome of one provider call, classified into a stat status."""

    status: str
    total_seconds: float = 0.0
    daily_average_seconds: float = 0.0
    error: str | None = None
    network_error: str | None = None
    fetched_at: datetime = field(default_factory=_utcnow)
    from_cache: bool = False
    response_status: int | None = None
    response_ok: bool = False
    payload: dict[str, Any] | None = None
    range_date: str | None = None
    range_timezone: str | None = None
    range_end: str | None = None

    @property
    def is_fresh(self) -> bool:
        """True when this result carries new information from the provider."""
        return not self.from_cache and self.network_error is None


@dataclass
class _CacheEntry:
    fetched_at: datetime
    result: ProviderResult


def extract_error_message(response: httpx.Response) -> str | None:
    """Pull a readable message out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()[:_MAX_ERROR_LENGTH]
        errors = body.get("errors")
        if isinstance(errors, str) and errors.strip():
            return errors.strip()[:_MAX_ERROR_LENGTH]
        if isinstance(errors, list):
            parts: list[str] = []
            for item in errors:
                if isinstance(item, str):
                    parts.append(item)
                elif isinstance(item, dict) and isinstance(item.get("message"), str):
                    parts.append(item["message"])
            if parts:
                return "; ".join(parts)[:_MAX_ERROR_LENGTH]

    text = response.text.strip()
    return text[:_MAX_ERROR_LENGTH] if text else None


class WakaTimeClient:
    """Fetches daily and weekly coding totals for one credential at a time."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self._timeout)
        self._base_url = base_url.rstrip("/")
        self._ttl_seconds = ttl_seconds
        self._clock = clock or _utcnow
        self._cache: dict[str, _CacheEntry] = {}

    async def __aenter__(self) -> WakaTimeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def clear_cache(self) -> None:
        self._cache.clear()

    async def get_daily_total(
        self,
        credential: str,
        *,
        timezone: str | None = None,
        bypass_cache: bool = False,
    ) -> ProviderResult:
        """Today's total for the credential's user.

        ``timezone`` is the user's last known zone; it only picks the cache
        slot so a cached total never leaks across a local midnight.
        """
        credential = credential.strip()
        now = self._clock()
        cache_key = f"daily:{credential}:{date_key_in_zone(now, timezone)}"
        return await self._fetch(
            cache_key,
            f"/users/current/{DAILY_ENDPOINT}",
            credential,
            StatsPayload.from_daily,
            now=now,
            bypass_cache=bypass_cache,
        )

    async def get_weekly_stats(
        self,
        range_key: str,
        credential: str,
        *,
        bypass_cache: bool = False,
    ) -> ProviderResult:
        """Aggregate stats for a rolling range such as ``last_7_days``."""
        credential = credential.strip()
        now = self._clock()
        cache_key = f"weekly:{range_key}:{credential}"
        return await self._fetch(
            cache_key,
            f"/users/current/{WEEKLY_ENDPOINT}/{quote(range_key, safe='')}",
            credential,
            StatsPayload.from_weekly,
            now=now,
            bypass_cache=bypass_cache,
        )

    async def _fetch(
        self,
        cache_key: str,
        path: str,
        credential: str,
        decode: Callable[[Any], StatsPayload],
        *,
        now: datetime,
        bypass_cache: bool,
    ) -> ProviderResult:
        cached = self._cache.get(cache_key)
        if (
            cached is not None
            and not bypass_cache
            and (now - cached.fetched_at).total_seconds() < self._ttl_seconds
        ):
            return replace(cached.result, from_cache=True)

        try:
            response = await self._http.get(
                f"{self._base_url}{path}",
                auth=(credential, ""),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.TransportError as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning(
                "wakatime_network_error",
                path=path,
                error=message,
                stale_fallback=cached is not None,
            )
            if cached is not None:
                return replace(cached.result, from_cache=True, network_error=message)
            return ProviderResult(
                status="error",
                error=message,
                network_error=message,
                fetched_at=now,
            )

        result = self._classify(response, decode, now)
        self._cache[cache_key] = _CacheEntry(fetched_at=now, result=result)
        logger.debug(
            "wakatime_fetched",
            path=path,
            status_code=response.status_code,
            status=result.status,
        )
        return result

    @staticmethod
    def _classify(
        response: httpx.Response,
        decode: Callable[[Any], StatsPayload],
        now: datetime,
    ) -> ProviderResult:
        code = response.status_code
        base: dict[str, Any] = {
            "fetched_at": now,
            "response_status": code,
            "response_ok": response.is_success,
        }

        if code in (401, 403):
            return ProviderResult(status="private", error="User data is private or unauthorized", **base)

        if code == 404:
            if _PRIVATE_404_RE.search(response.text):
                return ProviderResult(status="private", error="User data is private or unauthorized", **base)
            return ProviderResult(status="not_found", error="User not found", **base)

        if not response.is_success:
            message = extract_error_message(response) or f"Unexpected response ({code})"
            return ProviderResult(status="error", error=message, **base)

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return ProviderResult(status="error", error="Malformed provider payload", **base)

        decoded = decode(body)
        return ProviderResult(
            status="ok",
            total_seconds=decoded.total_seconds,
            daily_average_seconds=decoded.daily_average_seconds,
            payload=body,
            range_date=decoded.range_date,
            range_timezone=decoded.range_timezone,
            range_end=decoded.range_end,
            **base,
        )
