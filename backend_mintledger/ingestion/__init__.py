"""
Ingestion: ledger RPC clients, signature pager and resilient batch fetcher.
"""

from backend_mintledger.ingestion.fetcher import ResilientBatchFetcher
from backend_mintledger.ingestion.models import FetchResult, SignatureInfo
from backend_mintledger.ingestion.pager import collect_signatures, iter_signatures
from backend_mintledger.ingestion.rpc import HeliusClient, SolanaRpcClient
from backend_mintledger.ingestion.sources import SignatureSource, TransactionSource

__all__ = [
    "FetchResult",
    "HeliusClient",
    "ResilientBatchFetcher",
    "SignatureInfo",
    "SignatureSource",
    "SolanaRpcClient",
    "TransactionSource",
    "collect_signatures",
    "iter_signatures",
]
