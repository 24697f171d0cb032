"""
Periodic sync runner.

run_periodic_sync(): every interval_sec, run one incremental pass over the
minting authority's feed so API reads mostly hit a warm cache. Started by the
FastAPI lifespan (SYNC_INTERVAL_SEC > 0) or by main.py; runs in a background
thread, never blocks the API.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from backend_mintledger.database.cache import MintCache
from backend_mintledger.mintledger_logging import get_logger
from backend_mintledger.sync.service import build_synchronizer
from backend_mintledger.sync.synchronizer import SyncReport

logger = get_logger(__name__)

DEFAULT_SYNC_INTERVAL_SEC = 60.0
SHUTDOWN_JOIN_TIMEOUT_SEC = 15.0


@dataclass
class PeriodicSyncConfig:
    """Config for the periodic background sync."""

    interval_sec: float = DEFAULT_SYNC_INTERVAL_SEC
    min_interval_sec: float = 1.0


async def sync_once(cache: MintCache | None = None) -> SyncReport:
    """One incremental pass with clients built from settings."""
    async with build_synchronizer(cache=cache) as synchronizer:
        return await synchronizer.sync()


def run_periodic_sync(
    config: PeriodicSyncConfig,
    stop_event: threading.Event,
    *,
    cache: MintCache | None = None,
    sync_fn: Callable[[], Awaitable[SyncReport]] | None = None,
) -> int:
    """
    Run sync passes until stop_event is set. A failing tick is logged and the
    loop continues; the next tick starts from whatever the cache holds.
    Returns the number of ticks run.
    """
    run = sync_fn or (lambda: sync_once(cache))
    interval = max(config.min_interval_sec, config.interval_sec)
    logger.info("periodic_sync_started", interval_sec=interval)
    tick_count = 0
    failures = 0
    while not stop_event.is_set():
        tick_start = time.monotonic()
        tick_count += 1
        try:
            report = asyncio.run(run())
            logger.info("periodic_sync_tick_done", tick=tick_count, **report.to_dict())
        except Exception as e:
            failures += 1
            logger.exception("periodic_sync_tick_failed", tick=tick_count, error=str(e))
        # Sleep until next tick; wake periodically to check stop_event
        deadline = tick_start + interval
        while not stop_event.is_set() and time.monotonic() < deadline:
            stop_event.wait(timeout=min(1.0, max(0, deadline - time.monotonic())))
    logger.info("periodic_sync_stopped", tick_count=tick_count, failures=failures)
    return tick_count
