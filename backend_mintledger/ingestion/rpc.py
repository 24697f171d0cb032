"""
Solana JSON-RPC and Helius enhanced-transactions clients over httpx.

SolanaRpcClient implements SignatureSource (getSignaturesForAddress) and the
single-transaction half of TransactionSource (getTransaction, jsonParsed).
HeliusClient adds the batch half (POST /v0/transactions) and delegates single
lookups to an RPC client. Transport and RPC-level errors raise RpcError.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import httpx

from backend_mintledger.core.exceptions import RpcError
from backend_mintledger.ingestion.models import SignatureInfo
from backend_mintledger.ingestion.sources import (
    MAX_SIGNATURES_PER_REQUEST,
    MAX_TRANSACTIONS_PER_REQUEST,
)
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0

# JSON-RPC request id counter
_request_id = 0


def _next_id() -> int:
    global _request_id
    _request_id += 1
    return _request_id


def _decode_json(resp: httpx.Response) -> Any:
    """Decode a response body keeping fractional numbers as Decimal (never float)."""
    return json.loads(resp.text, parse_float=Decimal)


class _HttpClientOwner:
    """Shares one httpx.AsyncClient; closes it only if this object created it."""

    def __init__(self, client: httpx.AsyncClient | None, timeout_sec: float) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()


class SolanaRpcClient(_HttpClientOwner):
    """Minimal async Solana JSON-RPC client."""

    def __init__(
        self,
        rpc_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        commitment: str = "confirmed",
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        super().__init__(client, timeout_sec)
        self._rpc_url = rpc_url.strip()
        self._commitment = commitment

    async def call(self, method: str, params: list[Any]) -> Any:
        """Perform one JSON-RPC call; raise RpcError on transport or RPC error."""
        body = {"jsonrpc": "2.0", "id": _next_id(), "method": method, "params": params}
        try:
            resp = await self._client.post(self._rpc_url, json=body)
            resp.raise_for_status()
            data = _decode_json(resp)
        except httpx.HTTPError as e:
            raise RpcError(str(e) or type(e).__name__, method=method) from e
        except ValueError as e:
            raise RpcError(f"invalid JSON response: {e}", method=method) from e
        if not isinstance(data, dict):
            raise RpcError("unexpected response shape", method=method)
        if data.get("error"):
            err = data["error"]
            if isinstance(err, dict):
                raise RpcError(str(err.get("message", err)), method=method, code=err.get("code"))
            raise RpcError(str(err), method=method)
        return data.get("result")

    async def list_signatures(
        self,
        address: str,
        *,
        limit: int = MAX_SIGNATURES_PER_REQUEST,
        before: str | None = None,
        until: str | None = None,
    ) -> list[SignatureInfo]:
        if not (1 <= limit <= MAX_SIGNATURES_PER_REQUEST):
            raise ValueError(f"limit must be between 1 and {MAX_SIGNATURES_PER_REQUEST}")
        opts: dict[str, Any] = {"limit": limit, "commitment": "finalized"}
        if before is not None:
            opts["before"] = before
        if until is not None:
            opts["until"] = until
        result = await self.call("getSignaturesForAddress", [address, opts])
        if result is None:
            return []
        if not isinstance(result, list):
            raise RpcError("result is not a list", method="getSignaturesForAddress")
        infos: list[SignatureInfo] = []
        for item in result:
            if not isinstance(item, dict) or not isinstance(item.get("signature"), str) or not item["signature"]:
                logger.warning("rpc_signature_item_malformed", address=address, item=str(item)[:120])
                raise RpcError(f"malformed signature item: {str(item)[:120]}", method="getSignaturesForAddress")
            infos.append(SignatureInfo.from_rpc_item(item))
        return infos

    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None:
        params = [
            signature,
            {
                "encoding": "jsonParsed",
                "commitment": self._commitment,
                "maxSupportedTransactionVersion": 0,
            },
        ]
        result = await self.call("getTransaction", params)
        return result if isinstance(result, dict) else None


class HeliusClient(_HttpClientOwner):
    """
    TransactionSource backed by the Helius enhanced transactions API.

    get_transactions returns one entry per requested signature, in request order;
    entries the API did not return (or returned without a signature) are None.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        rpc: SolanaRpcClient,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        super().__init__(client, timeout_sec)
        self._endpoint = f"{api_url.rstrip('/')}/v0/transactions"
        self._api_key = api_key
        self._rpc = rpc

    async def get_transactions(self, signatures: list[str]) -> list[dict[str, Any] | None]:
        if len(signatures) > MAX_TRANSACTIONS_PER_REQUEST:
            raise ValueError(
                f"at most {MAX_TRANSACTIONS_PER_REQUEST} signatures per request, got {len(signatures)}"
            )
        if not signatures:
            return []
        try:
            resp = await self._client.post(
                self._endpoint,
                params={"api-key": self._api_key},
                json={"transactions": list(signatures)},
            )
            resp.raise_for_status()
            data = _decode_json(resp)
        except httpx.HTTPError as e:
            raise RpcError(str(e) or type(e).__name__, method="v0/transactions") from e
        except ValueError as e:
            raise RpcError(f"invalid JSON response: {e}", method="v0/transactions") from e
        if not isinstance(data, list):
            raise RpcError("response is not a list", method="v0/transactions")

        by_signature: dict[str, dict[str, Any]] = {}
        for item in data:
            if isinstance(item, dict) and item.get("signature"):
                by_signature[item["signature"]] = item
        return [by_signature.get(sig) for sig in signatures]

    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None:
        return await self._rpc.get_parsed_transaction(signature)

    async def aclose(self) -> None:
        await super().aclose()
        await self._rpc.aclose()
