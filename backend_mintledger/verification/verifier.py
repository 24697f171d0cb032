"""
Transfer verifier — proves a transaction is a specific SPL token transfer.

Given a signature and the expected sender owner, recipient owner, mint and
amount, fetch the jsonParsed transaction and check, in order: it exists, it
did not fail, it has a block time, it is not older than max_age_sec, it holds a
transfer/transferChecked (top-level or inner) between token accounts owned by
the expected parties, and the amount matches exactly. Every negative outcome
is a VerificationResult with valid=False, never an exception.

Token-account ownership is not part of the instruction: it is looked up in
meta.preTokenBalances by account index, and for the destination falls back to
meta.postTokenBalances when the account was created in the same transaction.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Protocol

import httpx

from backend_mintledger.core.exceptions import MintLedgerError
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_AGE_SEC = 300
SPL_TOKEN_PROGRAM = "spl-token"
TRANSFER_TYPES = ("transfer", "transferChecked")

# Error codes; the message always contains the matching phrase.
NOT_FOUND = "not_found"
FAILED_ON_LEDGER = "failed_on_ledger"
TIME_UNAVAILABLE = "time_unavailable"
TOO_OLD = "too_old"
NO_MATCHING_TRANSFER = "no_matching_transfer"
AMOUNT_MISMATCH = "amount_mismatch"
RPC_ERROR = "rpc_error"
MALFORMED_TRANSACTION = "malformed_transaction"


class ParsedTransactionSource(Protocol):
    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None: ...


@dataclass(frozen=True)
class TransferDetails:
    sender_token_account: str
    recipient_token_account: str
    sender_owner: str
    recipient_owner: str
    token_mint: str
    amount_tokens: int
    block_time: int | None = None
    slot: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "senderTokenAccount": self.sender_token_account,
            "recipientTokenAccount": self.recipient_token_account,
            "senderOwner": self.sender_owner,
            "recipientOwner": self.recipient_owner,
            "tokenMint": self.token_mint,
            "amountTokens": str(self.amount_tokens),
            "blockTime": self.block_time,
            "slot": self.slot,
        }


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    error: str | None = None
    code: str | None = None
    details: TransferDetails | None = None

    @classmethod
    def fail(cls, code: str, error: str) -> "VerificationResult":
        return cls(valid=False, error=error, code=code)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"valid": self.valid}
        if self.error is not None:
            out["error"] = self.error
            out["code"] = self.code
        if self.details is not None:
            out["details"] = self.details.to_dict()
        return out


def _meta(tx: dict[str, Any]) -> dict[str, Any]:
    meta = tx.get("meta")
    return meta if isinstance(meta, dict) else {}


def _message(tx: dict[str, Any]) -> dict[str, Any]:
    """transaction.message of a jsonParsed result; {} for any other encoding."""
    transaction = tx.get("transaction")
    message = transaction.get("message") if isinstance(transaction, dict) else None
    return message if isinstance(message, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _account_keys(tx: dict[str, Any]) -> list[str]:
    """accountKeys as base58 strings (jsonParsed dicts or plain strings, plus loaded addresses)."""
    keys = _list(_message(tx).get("accountKeys"))
    out: list[str] = []
    for k in keys:
        if isinstance(k, str):
            out.append(k)
        elif isinstance(k, dict):
            out.append(str(k.get("pubkey", "")))
    if keys and isinstance(keys[0], str):
        loaded = _meta(tx).get("loadedAddresses")
        if isinstance(loaded, dict):
            for role in ("writable", "readonly"):
                out.extend(a for a in _list(loaded.get(role)) if isinstance(a, str))
    return out


def _balances_by_account(
    tx: dict[str, Any], keys: list[str], field_name: str
) -> dict[str, dict[str, Any]]:
    """Map token account pubkey -> balance snapshot entry (owner, mint)."""
    out: dict[str, dict[str, Any]] = {}
    for bal in _list(_meta(tx).get(field_name)):
        idx = bal.get("accountIndex") if isinstance(bal, dict) else None
        if isinstance(idx, int) and 0 <= idx < len(keys):
            out[keys[idx]] = bal
    return out


def _iter_transfer_instructions(tx: dict[str, Any]) -> Iterator[tuple[str, dict[str, Any]]]:
    """(type, info) of parsed spl-token transfers: top-level first, then inner (CPI)."""
    groups: list[list[Any]] = [_list(_message(tx).get("instructions"))]
    for inner in _list(_meta(tx).get("innerInstructions")):
        if isinstance(inner, dict):
            groups.append(_list(inner.get("instructions")))
    for group in groups:
        for ix in group:
            if not isinstance(ix, dict) or ix.get("program") != SPL_TOKEN_PROGRAM:
                continue
            parsed = ix.get("parsed")
            if not isinstance(parsed, dict) or parsed.get("type") not in TRANSFER_TYPES:
                continue
            info = parsed.get("info")
            if isinstance(info, dict):
                yield parsed["type"], info


def _instruction_amount(kind: str, info: dict[str, Any]) -> int | None:
    if kind == "transferChecked":
        token_amount = info.get("tokenAmount")
        raw = token_amount.get("amount") if isinstance(token_amount, dict) else None
    else:
        raw = info.get("amount")
    try:
        return int(str(raw))
    except (TypeError, ValueError):
        return None


def find_matching_transfers(
    tx: dict[str, Any],
    expected_sender_owner: str,
    expected_recipient_owner: str,
    expected_mint: str,
) -> list[TransferDetails]:
    """All transfers in tx whose owners and mint match the expectation, in instruction order."""
    keys = _account_keys(tx)
    pre = _balances_by_account(tx, keys, "preTokenBalances")
    post = _balances_by_account(tx, keys, "postTokenBalances")
    matches: list[TransferDetails] = []
    for kind, info in _iter_transfer_instructions(tx):
        if kind == "transferChecked" and info.get("mint") != expected_mint:
            continue
        source = info.get("source")
        destination = info.get("destination")
        if not isinstance(source, str) or not isinstance(destination, str):
            continue
        src_bal = pre.get(source) or {}
        dst_bal = pre.get(destination) or post.get(destination) or {}
        # plain transfer carries no mint: the source snapshot decides it
        token_mint = src_bal.get("mint") or ""
        if token_mint and token_mint != expected_mint:
            continue
        if src_bal.get("owner") != expected_sender_owner:
            continue
        if dst_bal.get("owner") != expected_recipient_owner:
            continue
        amount = _instruction_amount(kind, info)
        if amount is None:
            continue
        matches.append(
            TransferDetails(
                sender_token_account=source,
                recipient_token_account=destination,
                sender_owner=expected_sender_owner,
                recipient_owner=expected_recipient_owner,
                token_mint=token_mint or info.get("mint") or expected_mint,
                amount_tokens=amount,
            )
        )
    return matches


class TransferVerifier:
    """Read-only verifier over a ParsedTransactionSource; safe to call concurrently."""

    def __init__(
        self,
        source: ParsedTransactionSource,
        *,
        default_max_age_sec: int = DEFAULT_MAX_AGE_SEC,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._default_max_age = default_max_age_sec
        self._clock = clock

    async def verify(
        self,
        signature: str,
        expected_sender_owner: str,
        expected_recipient_owner: str,
        expected_mint: str,
        expected_amount: int,
        max_age_sec: int | None = None,
    ) -> VerificationResult:
        if isinstance(expected_amount, bool) or not isinstance(expected_amount, int) or expected_amount < 0:
            raise ValueError(f"expected_amount must be a non-negative int, got {expected_amount!r}")
        max_age = self._default_max_age if max_age_sec is None else max_age_sec
        log = logger.bind(signature=signature)

        try:
            tx = await self._source.get_parsed_transaction(signature)
        except (MintLedgerError, httpx.HTTPError) as e:
            log.warning("verify_rpc_failed", error=str(e))
            return VerificationResult.fail(RPC_ERROR, f"rpc error: {e}")

        try:
            result = self._check(
                tx, expected_sender_owner, expected_recipient_owner, expected_mint, expected_amount, max_age
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            log.warning("verify_transaction_malformed", error=str(e), error_type=type(e).__name__)
            return VerificationResult.fail(MALFORMED_TRANSACTION, f"Transaction could not be parsed: {e}")
        if result.valid:
            log.info("verify_transfer_valid", amount=expected_amount, mint=expected_mint)
        else:
            log.info("verify_transfer_rejected", code=result.code, error=result.error)
        return result

    def _check(
        self,
        tx: dict[str, Any] | None,
        sender: str,
        recipient: str,
        mint: str,
        amount: int,
        max_age: int,
    ) -> VerificationResult:
        if not tx:
            return VerificationResult.fail(NOT_FOUND, "Transaction not found on ledger")
        if not isinstance(tx, dict):
            return VerificationResult.fail(
                MALFORMED_TRANSACTION, "Transaction could not be parsed: not a jsonParsed result"
            )
        if _meta(tx).get("err"):
            return VerificationResult.fail(FAILED_ON_LEDGER, "Transaction failed on ledger")
        block_time = tx.get("blockTime")
        if block_time is None:
            return VerificationResult.fail(TIME_UNAVAILABLE, "Transaction block time unavailable")
        age = int(self._clock()) - int(block_time)
        if age > max_age:
            return VerificationResult.fail(
                TOO_OLD, f"Transaction too old ({age} seconds). Maximum age is {max_age} seconds"
            )

        matches = find_matching_transfers(tx, sender, recipient, mint)
        if not matches:
            return VerificationResult.fail(
                NO_MATCHING_TRANSFER, "Transaction has no matching transfer"
            )
        exact = next((m for m in matches if m.amount_tokens == amount), None)
        if exact is None:
            return VerificationResult.fail(
                AMOUNT_MISMATCH,
                f"Transfer amount mismatch. Expected {amount} tokens, got {matches[0].amount_tokens}",
            )
        slot = tx.get("slot")
        details = TransferDetails(
            sender_token_account=exact.sender_token_account,
            recipient_token_account=exact.recipient_token_account,
            sender_owner=exact.sender_owner,
            recipient_owner=exact.recipient_owner,
            token_mint=exact.token_mint,
            amount_tokens=exact.amount_tokens,
            block_time=int(block_time),
            slot=int(slot) if slot is not None else None,
        )
        return VerificationResult(valid=True, details=details)


async def verify_transfer(
    source: ParsedTransactionSource,
    signature: str,
    expected_sender_owner: str,
    expected_recipient_owner: str,
    expected_mint: str,
    expected_amount: int,
    max_age_sec: int = DEFAULT_MAX_AGE_SEC,
) -> VerificationResult:
    """Functional form of TransferVerifier.verify."""
    return await TransferVerifier(source).verify(
        signature,
        expected_sender_owner,
        expected_recipient_owner,
        expected_mint,
        expected_amount,
        max_age_sec,
    )
