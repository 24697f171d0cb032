"""
Incremental synchronization of the mint cache from the minting authority's feed.
"""

from backend_mintledger.sync.service import build_synchronizer, get_token_mint_history
from backend_mintledger.sync.synchronizer import MintHistory, MintHistorySynchronizer, SyncReport

__all__ = [
    "MintHistory",
    "MintHistorySynchronizer",
    "SyncReport",
    "build_synchronizer",
    "get_token_mint_history",
]
