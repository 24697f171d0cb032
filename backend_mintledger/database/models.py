"""
Domain models for the mint cache.

MintEvent is the only persisted entity: one row per transaction signature,
append-only. Amounts are Python ints (uint256-capable) and are stored as
decimal text so no backend ever narrows them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class MintEvent:
    """One attributed mint transaction."""

    signature: str
    timestamp: int
    """Unix timestamp (seconds) of the block containing the transaction."""
    token_address: str
    wallet_address: str
    """Primary recipient: the wallet that received the largest single mint leg."""
    amount: int
    """Sum of all mint legs in the transaction (not only the primary recipient's)."""
    raw_transaction: dict[str, Any] = field(default_factory=dict, repr=False)
    id: int | None = None
    created_at: int | None = None

    def __post_init__(self) -> None:
        if self.amount < 0 or self.amount >= 2**256:
            raise ValueError(f"amount out of uint256 range: {self.amount}")

    def to_dict(self, *, include_raw: bool = False) -> dict[str, Any]:
        """JSON-safe dict; amount rendered as a decimal string."""
        out: dict[str, Any] = {
            "signature": self.signature,
            "timestamp": self.timestamp,
            "token_address": self.token_address,
            "wallet_address": self.wallet_address,
            "amount": str(self.amount),
        }
        if include_raw:
            out["tx_data"] = self.raw_transaction
        return out


@dataclass(frozen=True)
class SyncCursor:
    """
    High-water mark of the global mint log: the newest cached signature.

    Derived from the cache on every pass, never stored separately. The log is
    shared by all tokens; per-token views are projections of it at read time.
    """

    signature: str
    timestamp: int

    @classmethod
    def from_event(cls, event: MintEvent | None) -> "SyncCursor | None":
        if event is None:
            return None
        return cls(signature=event.signature, timestamp=event.timestamp)
