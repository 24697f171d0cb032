"""
Tests for the httpx-based RPC and enhanced-transactions clients (ingestion.rpc).

httpx.MockTransport stands in for the network; handlers record requests.
"""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from backend_mintledger.core.exceptions import RpcError
from backend_mintledger.ingestion.rpc import HeliusClient, SolanaRpcClient
from backend_mintledger.ingestion.sources import SignatureSource, TransactionSource
from conftest import FEED

RPC_URL = "https://rpc.test"
API_URL = "https://api.helius.test/"


def _run(handler, coro_fn):
    """Run coro_fn(client) against a MockTransport-backed AsyncClient."""

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_fn(client)

    return asyncio.run(go())


def test_list_signatures_request_and_parse():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        result = [
            {"signature": "sigB", "slot": 20, "blockTime": 1700000020, "err": None},
            {"signature": "sigA", "slot": 10, "blockTime": None, "err": {"InstructionError": [0, "x"]}},
        ]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    async def call(client):
        rpc = SolanaRpcClient(RPC_URL, client=client)
        return await rpc.list_signatures(FEED, limit=1000, before="sigZ", until="sig0")

    infos = _run(handler, call)
    [req] = seen
    assert req["method"] == "getSignaturesForAddress"
    assert req["params"][0] == FEED
    assert req["params"][1] == {"limit": 1000, "commitment": "finalized", "before": "sigZ", "until": "sig0"}
    assert [i.signature for i in infos] == ["sigB", "sigA"]
    assert infos[0].slot == 20
    assert infos[0].block_time == 1700000020
    assert infos[1].err is not None


@pytest.mark.parametrize("bad_item", [{"slot": 5}, "sigC", {"signature": None, "slot": 5}])
def test_list_signatures_malformed_item_raises(bad_item):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        result = [{"signature": "sigB", "slot": 20, "blockTime": 1700000020, "err": None}, bad_item]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    async def call(client):
        return await SolanaRpcClient(RPC_URL, client=client).list_signatures(FEED)

    with pytest.raises(RpcError) as exc_info:
        _run(handler, call)
    assert exc_info.value.method == "getSignaturesForAddress"
    assert "malformed signature item" in str(exc_info.value)


def test_list_signatures_omits_absent_cursors():
    seen: list[dict] = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": []})

    _run(handler, lambda c: SolanaRpcClient(RPC_URL, client=c).list_signatures(FEED, limit=10))
    assert seen[0]["params"][1] == {"limit": 10, "commitment": "finalized"}


def test_list_signatures_limit_bounds():
    with pytest.raises(ValueError):
        _run(lambda r: httpx.Response(200), lambda c: SolanaRpcClient(RPC_URL, client=c).list_signatures(FEED, limit=1001))


def test_rpc_error_object_raises():
    def handler(request):
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "Node is behind"}}
        )

    with pytest.raises(RpcError) as exc_info:
        _run(handler, lambda c: SolanaRpcClient(RPC_URL, client=c).list_signatures(FEED))
    assert exc_info.value.code == -32005
    assert exc_info.value.method == "getSignaturesForAddress"
    assert "Node is behind" in str(exc_info.value)


def test_http_status_raises_rpc_error():
    with pytest.raises(RpcError):
        _run(lambda r: httpx.Response(429, text="slow down"), lambda c: SolanaRpcClient(RPC_URL, client=c).call("getSlot", []))


def test_transport_error_raises_rpc_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RpcError, match="refused"):
        _run(handler, lambda c: SolanaRpcClient(RPC_URL, client=c).call("getSlot", []))


def test_get_parsed_transaction_params():
    seen: list[dict] = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})

    result = _run(handler, lambda c: SolanaRpcClient(RPC_URL, client=c).get_parsed_transaction("sig"))
    assert result is None
    assert seen[0]["method"] == "getTransaction"
    assert seen[0]["params"][1]["encoding"] == "jsonParsed"
    assert seen[0]["params"][1]["maxSupportedTransactionVersion"] == 0


def test_helius_batch_aligned_by_signature():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        # out of order, one missing, one null
        payload = '[{"signature": "c", "tokenTransfers": [{"tokenAmount": 0.25}]}, null, {"signature": "a"}]'
        return httpx.Response(200, text=payload, headers={"content-type": "application/json"})

    async def call(client):
        helius = HeliusClient(API_URL, "key-123", SolanaRpcClient(RPC_URL, client=client), client=client)
        return await helius.get_transactions(["a", "b", "c"])

    out = _run(handler, call)
    assert [o["signature"] if o else None for o in out] == ["a", None, "c"]
    assert out[2]["tokenTransfers"][0]["tokenAmount"] == Decimal("0.25")
    [req] = seen
    assert req.url.path == "/v0/transactions"
    assert req.url.params["api-key"] == "key-123"
    assert json.loads(req.content) == {"transactions": ["a", "b", "c"]}


def test_helius_batch_limit():
    async def call(client):
        helius = HeliusClient(API_URL, "k", SolanaRpcClient(RPC_URL, client=client), client=client)
        return await helius.get_transactions([str(i) for i in range(101)])

    with pytest.raises(ValueError):
        _run(lambda r: httpx.Response(200, json=[]), call)


def test_helius_non_list_response_raises():
    async def call(client):
        helius = HeliusClient(API_URL, "k", SolanaRpcClient(RPC_URL, client=client), client=client)
        return await helius.get_transactions(["a"])

    with pytest.raises(RpcError):
        _run(lambda r: httpx.Response(200, json={"error": "bad key"}), call)


def test_clients_satisfy_source_protocols():
    async def check(client):
        rpc = SolanaRpcClient(RPC_URL, client=client)
        helius = HeliusClient(API_URL, "k", rpc, client=client)
        return isinstance(rpc, SignatureSource), isinstance(helius, TransactionSource)

    assert _run(lambda r: httpx.Response(200), check) == (True, True)
