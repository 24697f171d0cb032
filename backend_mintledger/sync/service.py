"""
Wiring: settings -> RPC clients -> fetcher -> cache -> synchronizer.

get_token_mint_history() is the caller-facing operation used by the API, the
CLI and the background runner.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from backend_mintledger.attribution.filters import ExclusionRuleSet
from backend_mintledger.config import Settings, get_settings
from backend_mintledger.config.env import mask_api_key
from backend_mintledger.database.cache import MintCache, get_mint_cache
from backend_mintledger.ingestion.fetcher import ResilientBatchFetcher
from backend_mintledger.ingestion.rpc import HeliusClient, SolanaRpcClient
from backend_mintledger.mintledger_logging import get_logger
from backend_mintledger.sync.synchronizer import MintHistory, MintHistorySynchronizer

logger = get_logger(__name__)


def build_clients(settings: Settings) -> tuple[SolanaRpcClient, HeliusClient]:
    rpc = SolanaRpcClient(settings.rpc_url, timeout_sec=settings.rpc_timeout_sec)
    helius = HeliusClient(
        settings.helius_api_url,
        settings.helius_api_key,
        rpc,
        timeout_sec=settings.rpc_timeout_sec,
    )
    return rpc, helius


@asynccontextmanager
async def build_synchronizer(
    settings: Settings | None = None,
    *,
    cache: MintCache | None = None,
    rules: ExclusionRuleSet | None = None,
) -> AsyncIterator[MintHistorySynchronizer]:
    """Synchronizer wired from settings; closes its HTTP clients on exit."""
    settings = settings or get_settings()
    rpc, helius = build_clients(settings)
    fetcher = ResilientBatchFetcher(
        helius,
        batch_delay_sec=settings.fetch_batch_delay_sec,
        max_retries=settings.fetch_max_retries,
        retry_backoff_sec=settings.fetch_retry_backoff_sec,
    )
    logger.debug(
        "synchronizer_built",
        rpc_url=mask_api_key(settings.rpc_url),
        feed=settings.mint_authority,
    )
    try:
        yield MintHistorySynchronizer(
            feed_address=settings.mint_authority,
            signatures=rpc,
            fetcher=fetcher,
            cache=cache if cache is not None else get_mint_cache(settings.database_url),
            rules=rules,
        )
    finally:
        await helius.aclose()


async def get_token_mint_history(
    token_address: str,
    *,
    settings: Settings | None = None,
    cache: MintCache | None = None,
) -> MintHistory:
    """Sync the mint log and return {total_minted, transactions} for one token."""
    async with build_synchronizer(settings, cache=cache) as synchronizer:
        return await synchronizer.sync_and_read(token_address)
