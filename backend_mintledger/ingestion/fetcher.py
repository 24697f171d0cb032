"""
Resilient batch fetcher: full transaction bodies for a list of signatures.

Signatures are fetched in sequential chunks of MAX_TRANSACTIONS_PER_REQUEST with
a fixed delay between chunks. Bodies the upstream returns as null are recorded
as missing (common shortly after confirmation under load) and retried up to
max_retries times with linear backoff (attempt * backoff_sec). Whatever is still
missing after that is dropped and reported in FetchResult.dropped.
"""

from __future__ import annotations

import asyncio
from typing import Any

from backend_mintledger.ingestion.models import FetchResult
from backend_mintledger.ingestion.sources import MAX_TRANSACTIONS_PER_REQUEST, TransactionSource
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_DELAY_SEC = 0.1
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SEC = 1.0


class ResilientBatchFetcher:
    """Chunked fetch with missing-item retry over a TransactionSource."""

    def __init__(
        self,
        source: TransactionSource,
        *,
        batch_size: int = MAX_TRANSACTIONS_PER_REQUEST,
        batch_delay_sec: float = DEFAULT_BATCH_DELAY_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_sec: float = DEFAULT_RETRY_BACKOFF_SEC,
    ) -> None:
        if not (1 <= batch_size <= MAX_TRANSACTIONS_PER_REQUEST):
            raise ValueError(f"batch_size must be between 1 and {MAX_TRANSACTIONS_PER_REQUEST}")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._source = source
        self._batch_size = batch_size
        self._batch_delay = batch_delay_sec
        self._max_retries = max_retries
        self._backoff = retry_backoff_sec

    async def fetch_batch(
        self, signatures: list[str]
    ) -> tuple[list[dict[str, Any]], list[str]]:
        """One pass over all chunks. Returns (bodies, missing signatures)."""
        transactions: list[dict[str, Any]] = []
        missing: list[str] = []
        for start in range(0, len(signatures), self._batch_size):
            chunk = signatures[start : start + self._batch_size]
            bodies = await self._source.get_transactions(chunk)
            for i, sig in enumerate(chunk):
                body = bodies[i] if i < len(bodies) else None
                if isinstance(body, dict) and body.get("signature"):
                    transactions.append(body)
                else:
                    missing.append(sig)
            if missing:
                logger.debug("fetcher_chunk_missing", chunk_start=start, missing_total=len(missing))
            if start + self._batch_size < len(signatures) and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)
        return transactions, missing

    async def retry_missing(
        self, signatures: list[str]
    ) -> tuple[list[dict[str, Any]], list[str]]:
        """Retry missing signatures up to max_retries times. Returns (bodies, still missing)."""
        recovered: list[dict[str, Any]] = []
        pending = list(signatures)
        for attempt in range(self._max_retries):
            if not pending:
                break
            bodies, pending = await self.fetch_batch(pending)
            recovered.extend(bodies)
            logger.info(
                "fetcher_retry_attempt",
                attempt=attempt + 1,
                max_retries=self._max_retries,
                recovered=len(bodies),
                still_missing=len(pending),
            )
            if pending and attempt < self._max_retries - 1 and self._backoff > 0:
                await asyncio.sleep(self._backoff * (attempt + 1))
        return recovered, pending

    async def fetch(self, signatures: list[str]) -> FetchResult:
        """Fetch bodies for signatures; bodies keep discovery order, retried ones follow."""
        transactions, missing = await self.fetch_batch(signatures)
        dropped: list[str] = []
        if missing:
            recovered, dropped = await self.retry_missing(missing)
            transactions.extend(recovered)
        if dropped:
            logger.warning(
                "fetcher_signatures_dropped",
                dropped=len(dropped),
                requested=len(signatures),
                signatures=dropped[:20],
            )
        return FetchResult(transactions=transactions, dropped=dropped)
