"""
Application-level exceptions.

Transport and upstream failures surface as RpcError; input validation raises
ValueError subclasses so FastAPI handlers and the CLI can map them to 400 / exit 2.
Verification outcomes are never exceptions (see verification.verifier).
"""

from __future__ import annotations

from typing import Any


class MintLedgerError(Exception):
    """Base class for MintLedger errors."""


class RpcError(MintLedgerError):
    """JSON-RPC / HTTP failure talking to the ledger RPC or the enhanced transactions API."""

    def __init__(self, message: str, *, method: str | None = None, code: Any = None) -> None:
        super().__init__(message)
        self.method = method
        self.code = code

    def __str__(self) -> str:
        base = super().__str__()
        if self.method:
            base = f"{self.method}: {base}"
        if self.code is not None:
            base = f"{base} (code={self.code})"
        return base


class CacheError(MintLedgerError):
    """Persistent mint cache could not be read or written."""


class InvalidAddressError(ValueError):
    """Value is not a valid base58 Solana public key (or not on curve where required)."""


class InvalidSignatureError(ValueError):
    """Value is not a valid base58 transaction signature."""
