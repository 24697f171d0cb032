"""
Backend MintLedger — mint-event indexing and transfer verification for a Solana token launchpad.

Turns the signature feed of the launchpad's minting authority into a deduplicated,
incrementally synchronized cache of mint events, and verifies individual SPL token
transfers for payment and contribution flows.
"""

__version__ = "0.1.0"
