"""
Turns enhanced transaction bodies into attributed MintEvents.

A body qualifies when its classification is TOKEN_MINT and at least one token
transfer has an empty source user account (the mint-to shape). All such legs
are collected; the record is attributed to the wallet receiving the single
largest leg, and its amount is the sum of every leg in the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Iterable

from backend_mintledger.database.models import MintEvent
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger(__name__)

TOKEN_MINT_TYPE = "TOKEN_MINT"


@dataclass(frozen=True)
class MintLeg:
    """One mint-to transfer inside a transaction."""

    token_address: str
    wallet_address: str
    amount: int


def _to_int_amount(value: Any) -> int | None:
    """Floor a tokenAmount (int, Decimal or numeric string) to int without touching float."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not dec.is_finite():
        return None
    return int(dec.to_integral_value(rounding=ROUND_FLOOR))


def is_mint_transaction(tx: dict[str, Any]) -> bool:
    return tx.get("type") == TOKEN_MINT_TYPE and bool(tx.get("tokenTransfers"))


def extract_mint_legs(tx: dict[str, Any]) -> list[MintLeg]:
    """Mint legs of one body: transfers with an empty fromUserAccount and a recipient."""
    if not is_mint_transaction(tx):
        return []
    legs: list[MintLeg] = []
    for transfer in tx.get("tokenTransfers") or []:
        if not isinstance(transfer, dict):
            continue
        if transfer.get("fromUserAccount") != "" or not transfer.get("toUserAccount"):
            continue
        amount = _to_int_amount(transfer.get("tokenAmount"))
        if amount is None or amount < 0:
            logger.debug(
                "extractor_leg_bad_amount",
                signature=tx.get("signature"),
                token_amount=str(transfer.get("tokenAmount")),
            )
            continue
        legs.append(
            MintLeg(
                token_address=transfer.get("mint") or "",
                wallet_address=transfer["toUserAccount"],
                amount=amount,
            )
        )
    return legs


def attribute_mint(tx: dict[str, Any], legs: list[MintLeg]) -> MintEvent | None:
    """Collapse legs into one MintEvent: largest leg's wallet/token, total of all legs."""
    if not legs:
        return None
    # max() keeps the first of equal amounts
    primary = max(legs, key=lambda leg: leg.amount)
    total = sum(leg.amount for leg in legs)
    return MintEvent(
        signature=tx["signature"],
        timestamp=int(tx.get("timestamp") or 0),
        token_address=primary.token_address,
        wallet_address=primary.wallet_address,
        amount=total,
        raw_transaction=tx,
    )


def extract_mint_events(transactions: Iterable[dict[str, Any]]) -> list[MintEvent]:
    """One MintEvent per qualifying body, in input order; non-mint bodies yield nothing."""
    events: list[MintEvent] = []
    seen: set[str] = set()
    for tx in transactions:
        if not isinstance(tx, dict) or not tx.get("signature"):
            continue
        if tx["signature"] in seen:
            continue
        event = attribute_mint(tx, extract_mint_legs(tx))
        if event is None:
            continue
        seen.add(event.signature)
        events.append(event)
    return events


def filter_mint_bodies(transactions: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Bodies classified TOKEN_MINT with token transfers (used by the uncached full scan)."""
    return [tx for tx in transactions if isinstance(tx, dict) and is_mint_transaction(tx)]
