"""
Transfer verification for payment / contribution flows, plus input validation.
"""

from backend_mintledger.verification.verifier import (
    TransferDetails,
    TransferVerifier,
    VerificationResult,
    find_matching_transfers,
    verify_transfer,
)

__all__ = [
    "TransferDetails",
    "TransferVerifier",
    "VerificationResult",
    "find_matching_transfers",
    "verify_transfer",
]
