"""
FastAPI dependencies: cache, exclusion rules, synchronizer and verifier.

app.state is populated by the lifespan in server.py; tests replace these
dependencies through app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Request

from backend_mintledger.attribution.filters import ExclusionRuleSet, load_exclusion_rules
from backend_mintledger.config import get_settings
from backend_mintledger.database.cache import MintCache
from backend_mintledger.ingestion.fetcher import ResilientBatchFetcher
from backend_mintledger.sync.synchronizer import MintHistorySynchronizer
from backend_mintledger.verification.verifier import TransferVerifier


def get_cache(request: Request) -> MintCache:
    return request.app.state.cache


def get_rules() -> ExclusionRuleSet:
    return load_exclusion_rules()


def get_synchronizer(request: Request) -> MintHistorySynchronizer:
    settings = get_settings()
    state = request.app.state
    fetcher = ResilientBatchFetcher(
        state.helius,
        batch_delay_sec=settings.fetch_batch_delay_sec,
        max_retries=settings.fetch_max_retries,
        retry_backoff_sec=settings.fetch_retry_backoff_sec,
    )
    return MintHistorySynchronizer(
        feed_address=settings.mint_authority,
        signatures=state.rpc,
        fetcher=fetcher,
        cache=state.cache,
    )


def get_verifier(request: Request) -> TransferVerifier:
    return TransferVerifier(
        request.app.state.rpc, default_max_age_sec=get_settings().verify_max_age_sec
    )
