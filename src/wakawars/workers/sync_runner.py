"""Standalone runner for the WakaTime sync loop.

Syncs every connected user on an interval, evaluates achievements and
settles daily rank rewards.

Usage: python -m wakawars.workers.sync_runner
"""

from __future__ import annotations

import asyncio
import logging
import signal

from wakawars.config import get_settings
from wakawars.database import close_db, get_session_factory, init_db
from wakawars.log import setup_logging
from wakawars.provider.client import WakaTimeClient
from wakawars.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


async def main() -> None:
    """Run the sync loop until SIGINT/SIGTERM."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)

    client = WakaTimeClient(
        base_url=settings.wakatime_base_url,
        ttl_seconds=settings.wakatime_cache_ttl_seconds,
        timeout_seconds=settings.wakatime_timeout_seconds,
    )
    orchestrator = SyncOrchestrator(
        get_session_factory(),
        client,
        interval_seconds=settings.sync_interval_seconds,
        batch_size=settings.sync_batch_size,
        batch_delay_seconds=settings.sync_batch_delay_seconds,
        weekly_range_key=settings.weekly_range_key,
        weekend_days=settings.weekend_days,
        reward_table=settings.daily_rank_rewards,
    )

    # Handle graceful shutdown
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("Starting sync runner (interval=%ss, batch=%d)", settings.sync_interval_seconds, settings.sync_batch_size)

    try:
        orchestrator.start()
        await stop_event.wait()
    finally:
        await orchestrator.stop()
        await orchestrator.wait_idle()
        await client.aclose()
        await close_db()
        logger.info("Sync runner stopped")


if __name__ == "__main__":
    asyncio.run(main())
