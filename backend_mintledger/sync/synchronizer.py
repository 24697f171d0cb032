"""
Incremental cache synchronizer.

One append-only feed (the minting authority's signature history) backs the
cache for every token. A pass reads the global high-water mark from the cache,
pages only newer signatures, fetches and extracts the new bodies, and persists
them with insert-ignore semantics. Reads are per-token projections of that log,
filtered by the exclusion rules, with the total recomputed from filtered rows.

Signatures the fetcher drops are parked in the cache's pending table and
re-fetched on later passes; the cursor alone would never revisit them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx

from backend_mintledger.attribution.extractor import extract_mint_events, filter_mint_bodies
from backend_mintledger.attribution.filters import (
    ExclusionRuleSet,
    filter_mint_transactions,
    load_exclusion_rules,
)
from backend_mintledger.core.exceptions import MintLedgerError
from backend_mintledger.database.cache import MintCache
from backend_mintledger.database.models import MintEvent, SyncCursor
from backend_mintledger.ingestion.fetcher import ResilientBatchFetcher
from backend_mintledger.ingestion.pager import collect_signatures
from backend_mintledger.ingestion.sources import SignatureSource
from backend_mintledger.mintledger_logging import bind_token, get_logger

logger = get_logger(__name__)


@dataclass
class SyncReport:
    """What one sync pass did."""

    cursor: str | None = None
    new_signatures: int = 0
    pending_retried: int = 0
    fetched: int = 0
    extracted: int = 0
    stored: int = 0
    dropped: list[str] = field(default_factory=list)
    pending_resolved: int = 0
    degraded: bool = False
    error: str | None = None

    @property
    def skipped(self) -> bool:
        """True when there was nothing to fetch (no new and no pending signatures)."""
        return self.new_signatures == 0 and self.pending_retried == 0 and not self.degraded

    def to_dict(self) -> dict[str, Any]:
        return {
            "cursor": self.cursor,
            "new_signatures": self.new_signatures,
            "pending_retried": self.pending_retried,
            "fetched": self.fetched,
            "extracted": self.extracted,
            "stored": self.stored,
            "dropped": len(self.dropped),
            "pending_resolved": self.pending_resolved,
            "degraded": self.degraded,
            "error": self.error,
        }


@dataclass
class MintHistory:
    """Filtered per-token view of the cache plus the pass that preceded it."""

    total_minted: int
    transactions: list[MintEvent]
    report: SyncReport | None = None

    def to_dict(self, *, include_raw: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {
            "totalMinted": str(self.total_minted),
            "transactions": [t.to_dict(include_raw=include_raw) for t in self.transactions],
        }
        if self.report is not None:
            out["sync"] = self.report.to_dict()
        return out


class MintHistorySynchronizer:
    """Pager + fetcher + extractor against a MintCache, keyed on one feed address."""

    def __init__(
        self,
        *,
        feed_address: str,
        signatures: SignatureSource,
        fetcher: ResilientBatchFetcher,
        cache: MintCache,
        rules: ExclusionRuleSet | None = None,
        requeue_dropped: bool = True,
    ) -> None:
        if not feed_address.strip():
            raise ValueError("feed_address must be non-empty")
        self._feed = feed_address.strip()
        self._signatures = signatures
        self._fetcher = fetcher
        self._cache = cache
        self._rules = rules
        self._requeue = requeue_dropped

    @property
    def rules(self) -> ExclusionRuleSet:
        return self._rules if self._rules is not None else load_exclusion_rules()

    async def _cache_call(self, fn: Any, *args: Any) -> Any:
        # Cache I/O is blocking (SQLAlchemy); keep it off the event loop.
        return await asyncio.to_thread(fn, *args)

    async def current_cursor(self) -> SyncCursor | None:
        latest = await self._cache_call(self._cache.get_latest_cached_transaction)
        return SyncCursor.from_event(latest)

    async def sync(self) -> SyncReport:
        """
        One incremental pass. Raises on pager/fetcher/cache failure; nothing is
        persisted for a pass that fails before the store step.
        """
        report = SyncReport()
        cursor = await self.current_cursor()
        report.cursor = cursor.signature if cursor else None

        new_infos = await collect_signatures(
            self._signatures, self._feed, until=cursor.signature if cursor else None
        )
        new_sigs = [info.signature for info in new_infos]
        report.new_signatures = len(new_sigs)

        pending: list[str] = []
        if self._requeue:
            known = set(new_sigs)
            pending = [
                s for s in await self._cache_call(self._cache.get_pending_signatures)
                if s not in known
            ]
        report.pending_retried = len(pending)

        if not new_sigs and not pending:
            logger.info("mint_sync_noop", feed=self._feed, cursor=report.cursor)
            return report

        to_fetch = new_sigs + pending
        result = await self._fetcher.fetch(to_fetch)
        report.fetched = result.fetched
        report.dropped = list(result.dropped)

        events = extract_mint_events(result.transactions)
        report.extracted = len(events)
        if events:
            report.stored = await self._cache_call(
                self._cache.batch_store_mint_transactions, events
            )

        if self._requeue:
            dropped = set(result.dropped)
            resolved = [s for s in pending if s not in dropped]
            report.pending_resolved = len(resolved)
            await self._cache_call(self._cache.clear_pending, resolved)
            await self._cache_call(self._cache.mark_pending, list(result.dropped))

        if result.dropped:
            logger.warning(
                "mint_sync_signatures_dropped",
                feed=self._feed,
                dropped=len(result.dropped),
                requeued=self._requeue,
            )
        logger.info("mint_sync_complete", feed=self._feed, **report.to_dict())
        return report

    async def read(self, token_address: str) -> MintHistory:
        """Filtered cached history for one token; total derived from the filtered rows."""
        cached = await self._cache_call(self._cache.get_cached_mint_transactions, token_address)
        filtered = filter_mint_transactions(cached, token_address, self.rules)
        total = sum(e.amount for e in filtered)
        return MintHistory(total_minted=total, transactions=filtered)

    async def sync_and_read(self, token_address: str) -> MintHistory:
        """
        Sync the global log, then return the token's filtered history.

        A failed sync degrades to the currently cached history (report.degraded);
        errors reading the cache itself propagate.
        """
        log = bind_token(token_address)
        try:
            report = await self.sync()
        except (MintLedgerError, httpx.HTTPError) as e:
            log.warning("mint_sync_failed_serving_cache", error=str(e), error_type=type(e).__name__)
            report = SyncReport(degraded=True, error=str(e))
        history = await self.read(token_address)
        history.report = report
        log.info(
            "mint_history_served",
            count=len(history.transactions),
            total_minted=history.total_minted,
            degraded=report.degraded,
        )
        return history

    async def fetch_all_mint_transactions(self) -> list[dict[str, Any]]:
        """Uncached full scan of the feed: every TOKEN_MINT body the upstream serves."""
        infos = await collect_signatures(self._signatures, self._feed)
        result = await self._fetcher.fetch([i.signature for i in infos])
        return filter_mint_bodies(result.transactions)
