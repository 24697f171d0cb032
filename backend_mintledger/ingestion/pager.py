"""
Cursor-based enumeration of an address's signatures.

Pages of MAX_SIGNATURES_PER_REQUEST are requested newest-first; the last
signature of a full page becomes the `before` cursor for the next request.
A short (or empty) page ends enumeration. `until` is forwarded to the
upstream, which truncates at that boundary itself.

Any upstream error aborts enumeration and propagates; the caller decides
whether to restart (optionally from the last signature it saw, via `before`).
"""

from __future__ import annotations

from typing import AsyncIterator

from backend_mintledger.ingestion.models import SignatureInfo
from backend_mintledger.ingestion.sources import MAX_SIGNATURES_PER_REQUEST, SignatureSource
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger(__name__)


async def iter_signatures(
    source: SignatureSource,
    address: str,
    *,
    until: str | None = None,
    before: str | None = None,
    page_size: int = MAX_SIGNATURES_PER_REQUEST,
) -> AsyncIterator[SignatureInfo]:
    """Yield signatures referencing address, newest first, lazily page by page."""
    cursor = before
    page_no = 0
    while True:
        page_no += 1
        page = await source.list_signatures(
            address, limit=page_size, before=cursor, until=until
        )
        logger.debug(
            "pager_page_fetched",
            address=address,
            page=page_no,
            count=len(page),
            before=cursor,
            until=until,
        )
        if not page:
            return
        for info in page:
            yield info
        if len(page) < page_size:
            return
        cursor = page[-1].signature


async def collect_signatures(
    source: SignatureSource,
    address: str,
    *,
    until: str | None = None,
    before: str | None = None,
    page_size: int = MAX_SIGNATURES_PER_REQUEST,
) -> list[SignatureInfo]:
    """Materialize iter_signatures into a list (newest first)."""
    out: list[SignatureInfo] = []
    async for info in iter_signatures(
        source, address, until=until, before=before, page_size=page_size
    ):
        out.append(info)
    logger.info("pager_enumeration_complete", address=address, count=len(out), until=until)
    return out
