"""
Pytest fixtures for MintLedger tests.

In-memory fakes stand in for the ledger RPC (SignatureSource) and the enhanced
transactions API (TransactionSource); the mint cache is a temporary SQLite file.
"""

from __future__ import annotations

from typing import Any

import pytest

from backend_mintledger.attribution.filters import ExclusionRuleSet
from backend_mintledger.database.cache import SqlMintCache
from backend_mintledger.ingestion.models import SignatureInfo

FEED = "Hq7Xh37tT4sesD6wA4DphYfxeMJRhhFWS3KVUSSGjqzc"
TOKEN_A = "GVvPZpC6ymCoiHzYJ7CWZ8LhVn9tL2AUpRjSAsLh6jZC"
TOKEN_B = "C7MGcMnN8cXUkj8JQuMhkJZh6WqY2r8QnT3AUfKTkrix"
WALLET_1 = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
WALLET_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
WALLET_3 = "3UwzWidPv4soJhGKdRXeXV4hwQ4vg6aZHhB6ZyP6x9X3"


class FakeSignatureSource:
    """
    Feed of signatures, newest first. Honors before/until like the RPC
    (both exclusive) and records every call.
    """

    def __init__(self, signatures: list[str], *, fail_on_call: int | None = None) -> None:
        self.signatures = list(signatures)
        self.calls: list[dict[str, Any]] = []
        self._fail_on_call = fail_on_call

    def prepend(self, *signatures: str) -> None:
        """New transactions land at the head of the feed."""
        self.signatures = list(signatures) + self.signatures

    async def list_signatures(
        self,
        address: str,
        *,
        limit: int = 1000,
        before: str | None = None,
        until: str | None = None,
    ) -> list[SignatureInfo]:
        self.calls.append({"address": address, "limit": limit, "before": before, "until": until})
        if self._fail_on_call is not None and len(self.calls) == self._fail_on_call:
            from backend_mintledger.core.exceptions import RpcError

            raise RpcError("upstream unavailable", method="getSignaturesForAddress", code=-32005)
        sigs = self.signatures
        if until is not None and until in sigs:
            sigs = sigs[: sigs.index(until)]
        if before is not None:
            sigs = sigs[sigs.index(before) + 1 :] if before in sigs else []
        total = len(self.signatures)
        pos = {s: i for i, s in enumerate(self.signatures)}
        return [
            SignatureInfo(signature=s, slot=total - pos[s], block_time=None)
            for s in sigs[:limit]
        ]


class FakeTransactionSource:
    """
    Enhanced bodies by signature. `flaky` maps signature -> number of calls
    that return None before the body is served (-1: never served).
    """

    def __init__(
        self,
        bodies: dict[str, dict[str, Any]] | None = None,
        *,
        parsed: dict[str, dict[str, Any]] | None = None,
        flaky: dict[str, int] | None = None,
    ) -> None:
        self.bodies = dict(bodies or {})
        self.parsed = dict(parsed or {})
        self.flaky = dict(flaky or {})
        self.batch_calls: list[list[str]] = []
        self.parsed_calls: list[str] = []

    async def get_transactions(self, signatures: list[str]) -> list[dict[str, Any] | None]:
        assert len(signatures) <= 100
        self.batch_calls.append(list(signatures))
        out: list[dict[str, Any] | None] = []
        for sig in signatures:
            remaining = self.flaky.get(sig, 0)
            if remaining == -1:
                out.append(None)
                continue
            if remaining > 0:
                self.flaky[sig] = remaining - 1
                out.append(None)
                continue
            out.append(self.bodies.get(sig, {"signature": sig, "type": "UNKNOWN", "tokenTransfers": []}))
        return out

    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None:
        self.parsed_calls.append(signature)
        return self.parsed.get(signature)


def mint_body(signature: str, timestamp: int, legs: list[tuple[str, str, Any]]) -> dict[str, Any]:
    """Enhanced TOKEN_MINT body; legs are (mint, recipient wallet, tokenAmount)."""
    return {
        "signature": signature,
        "timestamp": timestamp,
        "type": "TOKEN_MINT",
        "source": "SOLANA_PROGRAM_LIBRARY",
        "fee": 5000,
        "feePayer": FEED,
        "tokenTransfers": [
            {
                "fromUserAccount": "",
                "toUserAccount": wallet,
                "fromTokenAccount": "",
                "toTokenAccount": f"ata-{wallet[:8]}",
                "tokenAmount": amount,
                "mint": mint,
                "tokenStandard": "Fungible",
            }
            for mint, wallet, amount in legs
        ],
    }


def transfer_body(signature: str, timestamp: int, mint: str, sender: str, receiver: str, amount: Any) -> dict[str, Any]:
    """Enhanced TRANSFER body (not a mint)."""
    return {
        "signature": signature,
        "timestamp": timestamp,
        "type": "TRANSFER",
        "source": "SYSTEM_PROGRAM",
        "tokenTransfers": [
            {
                "fromUserAccount": sender,
                "toUserAccount": receiver,
                "tokenAmount": amount,
                "mint": mint,
            }
        ],
    }


@pytest.fixture
def mint_cache(tmp_path):
    """Fresh SQLite-backed mint cache per test."""
    cache = SqlMintCache(f"sqlite:///{tmp_path / 'mintledger.db'}")
    cache.ensure_schema()
    yield cache
    cache.dispose()


@pytest.fixture
def no_rules() -> ExclusionRuleSet:
    return ExclusionRuleSet()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Settings never read a developer's .env values for DB / feed."""
    from backend_mintledger.config import reset_settings

    monkeypatch.setenv("MINTLEDGER_DB_PATH", str(tmp_path / "settings.db"))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("MINT_EXCLUSION_RULES_PATH", raising=False)
    monkeypatch.setattr("backend_mintledger.attribution.filters._rules_cache", None)
    reset_settings()
    yield
    reset_settings()
