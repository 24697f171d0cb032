"""
FastAPI router: POST /verify-transfer.

Business outcomes (not found, too old, mismatch, ...) are 200 responses with
valid=false so clients can show specific feedback; malformed input is a 400.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

from backend_mintledger.api_server.deps import get_verifier
from backend_mintledger.verification.validation import (
    validate_signature,
    validate_token_address,
    validate_wallet_address,
)
from backend_mintledger.verification.verifier import TransferVerifier

router = APIRouter(tags=["verification"])


class VerifyTransferRequest(BaseModel):
    signature: str = Field(..., min_length=32, max_length=128)
    senderOwner: str = Field(..., description="Wallet expected to own the source token account")
    recipientOwner: str = Field(..., description="Wallet (or escrow PDA) expected to own the destination")
    tokenMint: str
    amount: int = Field(..., ge=0, description="Base units; send as a string above 2**53")
    maxAgeSeconds: int | None = Field(None, gt=0)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_from_string(cls, v: Any) -> Any:
        if isinstance(v, str):
            s = v.strip()
            if not s.isdigit():
                raise ValueError("amount must be a non-negative integer")
            return int(s)
        if isinstance(v, float):
            raise ValueError("amount must be an integer number of base units")
        return v


@router.post("/verify-transfer")
async def verify_transfer(
    body: VerifyTransferRequest,
    verifier: TransferVerifier = Depends(get_verifier),
) -> dict[str, Any]:
    try:
        signature = validate_signature(body.signature)
        sender = validate_wallet_address(body.senderOwner)
        recipient = validate_wallet_address(body.recipientOwner, require_on_curve=False)
        mint = validate_token_address(body.tokenMint)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    result = await verifier.verify(
        signature, sender, recipient, mint, body.amount, body.maxAgeSeconds
    )
    return result.to_dict()
