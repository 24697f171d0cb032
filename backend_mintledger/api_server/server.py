"""
FastAPI server — mint history and transfer verification.

Lifespan opens the mint cache and the RPC clients once per process and,
when SYNC_INTERVAL_SEC > 0, starts the periodic sync runner in a daemon thread.
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend_mintledger import __version__
from backend_mintledger.api_server.mint_history import router as mint_history_router
from backend_mintledger.api_server.verify import router as verify_router
from backend_mintledger.config import get_settings
from backend_mintledger.config.env import mask_api_key
from backend_mintledger.database.cache import get_mint_cache
from backend_mintledger.mintledger_logging import get_logger
from backend_mintledger.sync.service import build_clients

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open cache and clients; start background sync if configured; clean up on shutdown."""
    from backend_mintledger.agent_worker.runner import (
        SHUTDOWN_JOIN_TIMEOUT_SEC,
        PeriodicSyncConfig,
        run_periodic_sync,
    )

    settings = get_settings()
    app.state.cache = get_mint_cache(settings.database_url)
    app.state.rpc, app.state.helius = build_clients(settings)
    logger.info(
        "api_started",
        rpc_url=mask_api_key(settings.rpc_url),
        feed=settings.mint_authority,
        network=settings.network,
    )

    stop_event = threading.Event()
    thread: threading.Thread | None = None
    if settings.sync_interval_sec > 0:
        config = PeriodicSyncConfig(interval_sec=settings.sync_interval_sec)
        thread = threading.Thread(
            target=run_periodic_sync,
            args=(config, stop_event),
            kwargs={"cache": app.state.cache},
            name="mint-sync-runner",
            daemon=True,
        )
        thread.start()
        logger.info("api_periodic_sync_started", interval_sec=config.interval_sec)

    yield

    stop_event.set()
    if thread is not None:
        thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT_SEC)
        if thread.is_alive():
            logger.warning("api_periodic_sync_shutdown_timeout", timeout_sec=SHUTDOWN_JOIN_TIMEOUT_SEC)
        else:
            logger.info("api_periodic_sync_stopped")
    await app.state.helius.aclose()
    app.state.cache.dispose()


app = FastAPI(
    title="Backend MintLedger API",
    description="Mint history of launchpad tokens and on-chain transfer verification.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(mint_history_router, prefix="/api")
app.include_router(verify_router, prefix="/api")


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness probe: API is up."""
    return {"status": "ok"}
