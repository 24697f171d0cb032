"""
Persistence layer — the mint cache (append-only MintEvent log) and its models.

SQLite by default; PostgreSQL via DATABASE_URL.
"""

from backend_mintledger.database.cache import (
    MintCache,
    SqlMintCache,
    get_mint_cache,
)
from backend_mintledger.database.models import MintEvent, SyncCursor

__all__ = [
    "MintCache",
    "MintEvent",
    "SqlMintCache",
    "SyncCursor",
    "get_mint_cache",
]
