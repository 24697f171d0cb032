"""
Tests for the FastAPI routes (api_server).

The lifespan is not entered; app.dependency_overrides supplies a synchronizer
over in-memory fakes, the temporary cache and a recording verifier.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend_mintledger.api_server.app import app
from backend_mintledger.api_server.deps import get_cache, get_rules, get_synchronizer, get_verifier
from backend_mintledger.ingestion.fetcher import ResilientBatchFetcher
from backend_mintledger.sync.synchronizer import MintHistorySynchronizer
from backend_mintledger.verification.verifier import TransferDetails, VerificationResult
from conftest import (
    FEED,
    TOKEN_A,
    WALLET_1,
    WALLET_2,
    WALLET_3,
    FakeSignatureSource,
    FakeTransactionSource,
    mint_body,
)

SIG = "1" * 64


class RecordingVerifier:
    def __init__(self, result: VerificationResult) -> None:
        self.result = result
        self.calls: list[tuple] = []

    async def verify(self, *args):
        self.calls.append(args)
        return self.result


@pytest.fixture
def signatures():
    return FakeSignatureSource(["s3", "s2", "s1"])


@pytest.fixture
def client(mint_cache, signatures):
    from backend_mintledger.attribution.filters import ExclusionRuleSet
    from backend_mintledger.config.settings import DEFAULT_RULES_PATH

    rules = ExclusionRuleSet.from_file(DEFAULT_RULES_PATH)
    transactions = FakeTransactionSource(
        {
            "s1": mint_body("s1", 100, [(TOKEN_A, WALLET_1, 500)]),
            "s2": mint_body("s2", 200, [(TOKEN_A, WALLET_1, 100), (TOKEN_A, WALLET_2, 300)]),
            "s3": mint_body("s3", 300, [(TOKEN_A, WALLET_3, 7)]),
        }
    )
    synchronizer = MintHistorySynchronizer(
        feed_address=FEED,
        signatures=signatures,
        fetcher=ResilientBatchFetcher(transactions, batch_delay_sec=0, retry_backoff_sec=0),
        cache=mint_cache,
        rules=rules,
    )
    app.dependency_overrides[get_rules] = lambda: rules
    app.dependency_overrides[get_synchronizer] = lambda: synchronizer
    app.dependency_overrides[get_cache] = lambda: mint_cache
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_mint_history_syncs_and_filters(client):
    r = client.get(f"/api/mint-history/{TOKEN_A}")
    assert r.status_code == 200
    body = r.json()
    assert body["token_address"] == TOKEN_A
    # s3 goes to an excluded wallet
    assert body["totalMinted"] == "900"
    assert [t["signature"] for t in body["transactions"]] == ["s1", "s2"]
    assert body["transactions"][1]["wallet_address"] == WALLET_2
    assert body["transactions"][1]["amount"] == "400"
    assert body["sync"]["stored"] == 3
    assert body["sync"]["degraded"] is False


def test_mint_history_degraded_still_serves_cache(client, signatures):
    client.get(f"/api/mint-history/{TOKEN_A}")
    signatures._fail_on_call = len(signatures.calls) + 1
    body = client.get(f"/api/mint-history/{TOKEN_A}").json()
    assert body["sync"]["degraded"] is True
    assert body["totalMinted"] == "900"


def test_mint_history_invalid_address(client):
    r = client.get("/api/mint-history/not-a-key")
    assert r.status_code == 400


def test_mint_transactions_reads_cache_with_exclusions(client):
    assert client.post("/api/mint-transactions", json={"tokenAddress": TOKEN_A}).json() == {
        "transactions": [],
        "count": 0,
    }
    client.get(f"/api/mint-history/{TOKEN_A}")
    body = client.post("/api/mint-transactions", json={"tokenAddress": TOKEN_A}).json()
    assert body["count"] == 2
    assert [t["signature"] for t in body["transactions"]] == ["s1", "s2"]
    assert WALLET_3 not in {t["wallet_address"] for t in body["transactions"]}


def test_mint_transactions_without_rules_returns_every_cached_row(client):
    from backend_mintledger.attribution.filters import ExclusionRuleSet

    client.get(f"/api/mint-history/{TOKEN_A}")
    app.dependency_overrides[get_rules] = lambda: ExclusionRuleSet()
    body = client.post("/api/mint-transactions", json={"tokenAddress": TOKEN_A}).json()
    assert [t["signature"] for t in body["transactions"]] == ["s1", "s2", "s3"]


def test_mint_transactions_validation(client):
    assert client.post("/api/mint-transactions", json={}).status_code == 422
    assert client.post("/api/mint-transactions", json={"tokenAddress": "zz"}).status_code == 400


def _verify_payload(**overrides):
    payload = {
        "signature": SIG,
        "senderOwner": FEED,
        "recipientOwner": WALLET_2,
        "tokenMint": TOKEN_A,
        "amount": "1000000000000000000000",
    }
    payload.update(overrides)
    return payload


def test_verify_transfer_valid():
    details = TransferDetails(
        sender_token_account="src",
        recipient_token_account="dst",
        sender_owner=FEED,
        recipient_owner=WALLET_2,
        token_mint=TOKEN_A,
        amount_tokens=10**21,
        block_time=1,
        slot=2,
    )
    verifier = RecordingVerifier(VerificationResult(valid=True, details=details))
    app.dependency_overrides[get_verifier] = lambda: verifier
    try:
        r = TestClient(app).post("/api/verify-transfer", json=_verify_payload(maxAgeSeconds=60))
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 200
    assert r.json()["valid"] is True
    assert r.json()["details"]["amountTokens"] == str(10**21)
    assert verifier.calls == [(SIG, FEED, WALLET_2, TOKEN_A, 10**21, 60)]


def test_verify_transfer_negative_outcome_is_200():
    verifier = RecordingVerifier(VerificationResult.fail("too_old", "Transaction too old (900 seconds). Maximum age is 300 seconds"))
    app.dependency_overrides[get_verifier] = lambda: verifier
    try:
        r = TestClient(app).post("/api/verify-transfer", json=_verify_payload(amount=5))
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 200
    assert r.json() == {
        "valid": False,
        "error": "Transaction too old (900 seconds). Maximum age is 300 seconds",
        "code": "too_old",
    }
    assert verifier.calls[0][4] == 5
    assert verifier.calls[0][5] is None


@pytest.mark.parametrize(
    "overrides, status",
    [
        ({"signature": "0" * 64}, 400),
        ({"senderOwner": "not-a-wallet"}, 400),
        ({"tokenMint": "bad"}, 400),
        ({"amount": 1.5}, 422),
        ({"amount": "-3"}, 422),
    ],
)
def test_verify_transfer_bad_input(overrides, status):
    verifier = RecordingVerifier(VerificationResult(valid=True))
    app.dependency_overrides[get_verifier] = lambda: verifier
    try:
        r = TestClient(app).post("/api/verify-transfer", json=_verify_payload(**overrides))
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == status
    assert verifier.calls == []
