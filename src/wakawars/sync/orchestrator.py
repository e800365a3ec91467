"""Periodic WakaTime sync.

One sweep: fetch every user with an API key (batched to respect the
provider's rate limit), persist fresh stats, refresh the stored timezone,
evaluate achievements, log provider calls, then settle yesterday's rank
rewards for everyone. Sweeps never overlap; a tick that finds one still
running is skipped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wakawars.achievements.rules import DEFAULT_WEEKEND_DAYS
from wakawars.achievements.service import award_daily_achievements, award_weekly_achievements
from wakawars.competition.ranking import DEFAULT_REWARD_TABLE
from wakawars.competition.settlement import SettlementSummary, settle_previous_day
from wakawars.provider.batching import DEFAULT_BATCH_DELAY_SECONDS, DEFAULT_BATCH_SIZE, run_in_batches
from wakawars.provider.client import DAILY_ENDPOINT, WEEKLY_ENDPOINT, ProviderResult, WakaTimeClient
from wakawars.stats.date_keys import date_key_in_zone, is_valid_date_key, is_valid_timezone
from wakawars.stats.service import create_provider_log, upsert_daily_stat, upsert_weekly_stat
from wakawars.users.service import list_syncable_users, require_user, update_timezone

logger = structlog.get_logger()

DEFAULT_INTERVAL_SECONDS = 2 * 60
DEFAULT_WEEKLY_RANGE_KEY = "last_7_days"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SyncTarget:
    user_id: int
    api_key: str
    timezone: str | None = None


@dataclass
class UserSyncResult:
    user_id: int
    date_key: str
    daily_status: str
    weekly_status: str
    daily_fresh: bool = False
    weekly_fresh: bool = False
    timezone_changed: bool = False
    achievements: list[str] = field(default_factory=list)


@dataclass
class SyncRunSummary:
    started_at: datetime
    finished_at: datetime
    users: int = 0
    synced: int = 0
    failed: int = 0
    settlement: SettlementSummary | None = None


def resolve_effective_date_key(
    daily: ProviderResult,
    stored_timezone: str | None,
    now: datetime,
) -> str:
    """The day the daily total belongs to.

    Prefers the date WakaTime reports, then its reported zone, then the
    stored zone, then UTC.
    """
    if daily.range_date and is_valid_date_key(daily.range_date):
        return daily.range_date
    if is_valid_timezone(daily.range_timezone):
        return date_key_in_zone(now, daily.range_timezone)
    return date_key_in_zone(now, stored_timezone)


def _needs_log(result: ProviderResult) -> bool:
    # plain cache hits made no request
    return not result.from_cache or result.network_error is not None


class SyncOrchestrator:
    """Owns the sync loop, the in-flight guard and the per-user pipeline."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: WakaTimeClient,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        weekly_range_key: str = DEFAULT_WEEKLY_RANGE_KEY,
        weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
        reward_table: Mapping[int, int] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._interval_seconds = interval_seconds
        self._batch_size = batch_size
        self._batch_delay_seconds = batch_delay_seconds
        self._weekly_range_key = weekly_range_key
        self._weekend_days = frozenset(weekend_days)
        self._reward_table = dict(reward_table) if reward_table is not None else dict(DEFAULT_REWARD_TABLE)
        self._on_error = on_error
        self._clock = clock or _utcnow
        self._running = False
        self._loop_task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[SyncRunSummary | None]] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    def _report(self, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(error)
        else:
            logger.exception("sync_error", error=str(error), exc_info=error)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def run_once(self) -> SyncRunSummary | None:
        """Sync every user then settle yesterday. None if a sweep is in flight."""
        if self._running:
            logger.debug("sync_skipped_in_flight")
            return None

        self._running = True
        started_at = self._clock()
        try:
            async with self._session_factory() as db:
                targets = [
                    SyncTarget(user_id=u.id, api_key=u.api_key, timezone=u.wakatime_timezone)
                    for u in await list_syncable_users(db)
                ]

            outcomes = await run_in_batches(
                targets,
                self._sync_one,
                batch_size=self._batch_size,
                delay_seconds=self._batch_delay_seconds,
                on_error=lambda error, _target: self._report(error),
            )

            settlement = await settle_previous_day(
                self._session_factory,
                now=self._clock(),
                reward_table=self._reward_table,
                on_error=self._report,
            )
        finally:
            self._running = False

        summary = SyncRunSummary(
            started_at=started_at,
            finished_at=self._clock(),
            users=len(targets),
            synced=sum(1 for o in outcomes if o.ok),
            failed=sum(1 for o in outcomes if not o.ok),
            settlement=settlement,
        )
        logger.info(
            "sync_run_complete",
            users=summary.users,
            synced=summary.synced,
            failed=summary.failed,
            settled=settlement.applied,
            coins_awarded=settlement.coins_awarded,
        )
        return summary

    async def sync_user(
        self,
        user_id: int,
        api_key: str,
        timezone: str | None = None,
        bypass_cache: bool = False,
    ) -> UserSyncResult | None:
        """Sync one user right away, e.g. after they connect WakaTime.

        Runs outside the sweep guard. Errors are reported, not raised.
        """
        try:
            return await self._sync_one(
                SyncTarget(user_id=user_id, api_key=api_key, timezone=timezone),
                bypass_cache=bypass_cache,
            )
        except Exception as exc:
            self._report(exc)
            return None

    async def _sync_one(self, target: SyncTarget, bypass_cache: bool = False) -> UserSyncResult:
        daily, weekly = await asyncio.gather(
            self._client.get_daily_total(target.api_key, timezone=target.timezone, bypass_cache=bypass_cache),
            self._client.get_weekly_stats(self._weekly_range_key, target.api_key, bypass_cache=bypass_cache),
        )
        now = self._clock()
        log = logger.bind(user_id=target.user_id)

        async with self._session_factory() as db:
            user = await require_user(db, target.user_id)
            stored_timezone = target.timezone or user.wakatime_timezone
            date_key = resolve_effective_date_key(daily, stored_timezone, now)

            if daily.is_fresh:
                await upsert_daily_stat(
                    db, user.id, date_key, daily.total_seconds, daily.status, daily.fetched_at, daily.error,
                )
            if weekly.is_fresh:
                await upsert_weekly_stat(
                    db,
                    user.id,
                    self._weekly_range_key,
                    weekly.total_seconds,
                    weekly.daily_average_seconds,
                    weekly.status,
                    weekly.fetched_at,
                    weekly.error,
                )

            timezone_changed = False
            for result in (daily, weekly):
                if result.is_fresh and is_valid_timezone(result.range_timezone):
                    timezone_changed = await update_timezone(db, user, result.range_timezone)
                    break

            achievements: list[str] = []
            if daily.is_fresh:
                achievements += await award_daily_achievements(
                    db,
                    user_id=user.id,
                    date_key=date_key,
                    status=daily.status,
                    total_seconds=daily.total_seconds,
                    payload=daily.payload,
                    fetched_at=daily.fetched_at,
                    weekend_days=self._weekend_days,
                )
            if weekly.is_fresh:
                achievements += await award_weekly_achievements(
                    db,
                    user_id=user.id,
                    range_key=self._weekly_range_key,
                    status=weekly.status,
                    total_seconds=weekly.total_seconds,
                    daily_average_seconds=weekly.daily_average_seconds,
                    payload=weekly.payload,
                    fetched_at=weekly.fetched_at,
                )

            for endpoint, range_key, result in (
                (DAILY_ENDPOINT, date_key, daily),
                (WEEKLY_ENDPOINT, self._weekly_range_key, weekly),
            ):
                if _needs_log(result):
                    await create_provider_log(
                        db,
                        user_id=user.id,
                        endpoint=endpoint,
                        range_key=range_key,
                        status_code=result.response_status,
                        ok=result.response_ok and result.network_error is None,
                        payload=result.payload,
                        error=result.network_error or result.error,
                        fetched_at=now if result.network_error else result.fetched_at,
                    )

            await db.commit()

        if achievements:
            log.info("achievements_granted", achievements=achievements, date_key=date_key)
        log.debug(
            "user_synced",
            date_key=date_key,
            daily_status=daily.status,
            weekly_status=weekly.status,
            daily_fresh=daily.is_fresh,
            weekly_fresh=weekly.is_fresh,
        )
        return UserSyncResult(
            user_id=user.id,
            date_key=date_key,
            daily_status=daily.status,
            weekly_status=weekly.status,
            daily_fresh=daily.is_fresh,
            weekly_fresh=weekly.is_fresh,
            timezone_changed=timezone_changed,
            achievements=achievements,
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic loop: one sweep now, then every interval."""
        if self._loop_task is not None and not self._loop_task.done():
            return
        self._loop_task = asyncio.create_task(self._loop())
        logger.info("sync_loop_started", interval_seconds=self._interval_seconds)

    async def stop(self) -> None:
        """Stop ticking. A sweep already in flight is left to finish."""
        task, self._loop_task = self._loop_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("sync_loop_stopped")

    async def wait_idle(self) -> None:
        """Wait for in-flight sweeps started by the loop."""
        while self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def _loop(self) -> None:
        while True:
            task = asyncio.create_task(self._guarded_run())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            await asyncio.sleep(self._interval_seconds)

    async def _guarded_run(self) -> SyncRunSummary | None:
        try:
            return await self.run_once()
        except Exception as exc:
            self._report(exc)
            return None
