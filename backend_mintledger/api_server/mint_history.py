"""
FastAPI router: GET /mint-history/{token_address}, POST /mint-transactions.

mint-history syncs the global mint log first and serves the filtered view
(falls back to cached data when the sync fails). mint-transactions reads the
cache only, with the same exclusion filter applied.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backend_mintledger.api_server.deps import get_cache, get_rules, get_synchronizer
from backend_mintledger.attribution.filters import ExclusionRuleSet, filter_mint_transactions
from backend_mintledger.core.exceptions import InvalidAddressError
from backend_mintledger.database.cache import MintCache
from backend_mintledger.mintledger_logging import get_logger
from backend_mintledger.sync.synchronizer import MintHistorySynchronizer
from backend_mintledger.verification.validation import validate_token_address

logger = get_logger(__name__)

router = APIRouter(tags=["mint-history"])


class MintTransactionOut(BaseModel):
    signature: str
    timestamp: int
    token_address: str
    wallet_address: str
    amount: str = Field(..., description="Total minted in the transaction (base units, decimal string)")


class SyncSummary(BaseModel):
    new_signatures: int = 0
    fetched: int = 0
    stored: int = 0
    dropped: int = 0
    degraded: bool = False


class MintHistoryResponse(BaseModel):
    token_address: str
    totalMinted: str = Field(..., description="Sum of filtered mint amounts (base units, decimal string)")
    transactions: list[MintTransactionOut]
    sync: SyncSummary | None = None


class MintTransactionsRequest(BaseModel):
    tokenAddress: str = Field(..., min_length=1, max_length=64)


class MintTransactionsResponse(BaseModel):
    transactions: list[MintTransactionOut]
    count: int


def _validated_token(token_address: str) -> str:
    try:
        return validate_token_address(token_address)
    except InvalidAddressError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/mint-history/{token_address}", response_model=MintHistoryResponse)
async def mint_history(
    token_address: str,
    synchronizer: MintHistorySynchronizer = Depends(get_synchronizer),
) -> dict[str, Any]:
    """Incrementally sync, then return the token's filtered mint history and total."""
    token = _validated_token(token_address)
    history = await synchronizer.sync_and_read(token)
    report = history.report
    return {
        "token_address": token,
        "totalMinted": str(history.total_minted),
        "transactions": [t.to_dict() for t in history.transactions],
        "sync": None
        if report is None
        else {
            "new_signatures": report.new_signatures,
            "fetched": report.fetched,
            "stored": report.stored,
            "dropped": len(report.dropped),
            "degraded": report.degraded,
        },
    }


@router.post("/mint-transactions", response_model=MintTransactionsResponse)
async def mint_transactions(
    body: MintTransactionsRequest,
    cache: MintCache = Depends(get_cache),
    rules: ExclusionRuleSet = Depends(get_rules),
) -> dict[str, Any]:
    """Cached mint transactions for a token, exclusion rules applied (no sync)."""
    token = _validated_token(body.tokenAddress)
    cached = await asyncio.to_thread(cache.get_cached_mint_transactions, token)
    events = filter_mint_transactions(cached, token, rules)
    logger.info("mint_transactions_read", token_address=token, count=len(events))
    return {"transactions": [e.to_dict() for e in events], "count": len(events)}
