"""
Data models for ingestion output.

SignatureInfo is the pager's unit of work; FetchResult is what the batch
fetcher hands to the extractor (bodies it got, signatures it gave up on).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SignatureInfo:
    """
    Normalized transaction signature info from getSignaturesForAddress.

    Ephemeral: produced by the pager, never persisted.
    """

    signature: str
    slot: int
    block_time: int | None  # Unix timestamp; None if not available
    err: Any = None  # None if success; dict/object from RPC if failed

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "SignatureInfo":
        """Build from a single getSignaturesForAddress result item."""
        return cls(
            signature=item["signature"],
            slot=int(item.get("slot") or 0),
            block_time=item.get("blockTime"),
            err=item.get("err"),
        )


@dataclass
class FetchResult:
    """Outcome of one resilient fetch pass."""

    transactions: list[dict[str, Any]] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    """Signatures still missing after the retry cap; the caller must log or requeue them."""

    @property
    def fetched(self) -> int:
        return len(self.transactions)
