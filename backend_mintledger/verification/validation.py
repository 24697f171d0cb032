"""
Input validation for addresses and transaction signatures (solders-backed).
"""

from __future__ import annotations

from solders.pubkey import Pubkey
from solders.signature import Signature

from backend_mintledger.core.exceptions import InvalidAddressError, InvalidSignatureError


def validate_signature(signature: str) -> str:
    """Return the stripped signature; raise InvalidSignatureError unless it is 64 bytes of base58."""
    sig = (signature or "").strip()
    if not sig:
        raise InvalidSignatureError("signature must be non-empty")
    try:
        Signature.from_string(sig)
    except Exception as e:
        raise InvalidSignatureError(f"Invalid transaction signature: {e}") from e
    return sig


def validate_token_address(address: str) -> str:
    """Token mints may be PDAs (off curve); only the public key format is checked."""
    addr = (address or "").strip()
    if not addr:
        raise InvalidAddressError("token address must be non-empty")
    try:
        Pubkey.from_string(addr)
    except Exception as e:
        raise InvalidAddressError(f"Invalid token address: {e}") from e
    return addr


def validate_wallet_address(address: str, *, require_on_curve: bool = True) -> str:
    """Wallets must be valid public keys on the ed25519 curve (escrow PDAs pass require_on_curve=False)."""
    addr = (address or "").strip()
    if not addr:
        raise InvalidAddressError("wallet address must be non-empty")
    try:
        pubkey = Pubkey.from_string(addr)
    except Exception as e:
        raise InvalidAddressError(f"Invalid Solana wallet: {e}") from e
    if require_on_curve and not pubkey.is_on_curve():
        raise InvalidAddressError(f"Invalid Solana wallet: {addr} is not on the ed25519 curve")
    return addr
