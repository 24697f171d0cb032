"""
Upstream capability interfaces.

The pager, fetcher, synchronizer and verifier only depend on these protocols,
so tests can substitute in-memory fakes for the RPC and the enhanced API.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from backend_mintledger.ingestion.models import SignatureInfo

# getSignaturesForAddress hard limit
MAX_SIGNATURES_PER_REQUEST = 1000
# Enhanced transactions endpoint hard limit
MAX_TRANSACTIONS_PER_REQUEST = 100


@runtime_checkable
class SignatureSource(Protocol):
    async def list_signatures(
        self,
        address: str,
        *,
        limit: int = MAX_SIGNATURES_PER_REQUEST,
        before: str | None = None,
        until: str | None = None,
    ) -> list[SignatureInfo]:
        """Signatures referencing address, newest first, bounded by before/until (both exclusive)."""
        ...


@runtime_checkable
class TransactionSource(Protocol):
    async def get_transactions(self, signatures: list[str]) -> list[dict[str, Any] | None]:
        """
        Enhanced transaction bodies for up to MAX_TRANSACTIONS_PER_REQUEST signatures.
        Result is aligned with the input; None marks a body the upstream did not serve.
        """
        ...

    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None:
        """jsonParsed getTransaction result, or None if the ledger does not know the signature."""
        ...
