from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import arcade_ledger.api.app as app_mod
from arcade_ledger.api.app import create_app
from arcade_ledger.runtime.executor import ArcadeExecutor
from arcade_ledger.testing.sigtools import make_tx, principal

CHAIN = "arcade-api-test"


@pytest.fixture
def client(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ARCADE_MODE", "dev")
    monkeypatch.setenv("ARCADE_RL_WRITE_BURST", "1000")
    monkeypatch.setenv("ARCADE_RL_READ_BURST", "1000")
    monkeypatch.delenv("ARCADE_CORS_ORIGINS", raising=False)

    ex = ArcadeExecutor(db_path=str(tmp_path / "api.db"), node_id="api-node", chain_id=CHAIN, mode="dev")
    monkeypatch.setattr(app_mod, "build_executor", lambda: ex)
    with TestClient(create_app()) as c:
        yield c


def _post(c: TestClient, label: str, tx_type: str, nonce: int, payload: dict):
    return c.post("/v1/tx/submit", json=make_tx(label, tx_type, nonce, payload, chain_id=CHAIN))


def _open_arcade(c: TestClient) -> str:
    assert _post(c, "owner", "ACCOUNT_AIRDROP", 1, {"lamports": 10**9}).status_code == 200
    assert _post(c, "alice", "ACCOUNT_AIRDROP", 1, {"lamports": 10**6}).status_code == 200
    r = _post(c, "owner", "ARCADE_INITIALIZE", 2, {"name": "Arcade", "max_top_scores": 3, "price_per_game": 100})
    assert r.status_code == 200, r.text
    return r.json()["result"]["arcade"]


def test_health(client: TestClient) -> None:
    r = client.get("/v1/health")
    assert r.status_code == 200
    j = r.json()
    assert j["ok"] is True and j["ready"] is True
    assert j["chain_id"] == CHAIN
    assert "x-request-id" in r.headers


def test_derive_matches_initialized_record(client: TestClient) -> None:
    owner = principal("owner")
    before = client.get(f"/v1/arcades/derive/{owner}").json()
    assert before["initialized"] is False

    arcade = _open_arcade(client)
    after = client.get(f"/v1/arcades/derive/{owner}").json()
    assert after["arcade"] == arcade
    assert after["initialized"] is True


def test_play_score_and_queries(client: TestClient) -> None:
    arcade = _open_arcade(client)
    alice = principal("alice")

    r = _post(client, "alice", "ARCADE_PLAY", 2, {"arcade": arcade, "lamports": 100})
    assert r.status_code == 200
    assert r.json()["result"]["game_counter"] == 1

    r = _post(
        client,
        "owner",
        "ARCADE_SCORE_SUBMIT",
        3,
        {"arcade": arcade, "player": alice, "nickname": "al", "score": 77, "beneficiary_account": alice},
    )
    assert r.status_code == 200
    assert r.json()["result"]["payout"] == 50

    top = client.get(f"/v1/arcades/{arcade}/top-scores").json()
    assert top["max_top_scores"] == 3
    assert [(e["player"], e["score"]) for e in top["top_scores"]] == [(alice, 77)]

    assert client.get(f"/v1/arcades/{arcade}/game-counter").json()["value"] == 1
    assert client.get(f"/v1/arcades/{arcade}/price").json()["value"] == 100
    assert client.get(f"/v1/arcades/{arcade}/total-distributed").json()["value"] == 50

    rec = client.get(f"/v1/arcades/{arcade}").json()["arcade"]
    assert rec["available_for_payout"] == 0
    assert rec["escrow_balance"] == rec["min_reserve"]

    evs = client.get(f"/v1/arcades/{arcade}/events").json()["events"]
    assert [e["event"] for e in evs] == ["arcade_initialized", "game_played", "score_submitted", "prize_paid"]
    tail = client.get(f"/v1/arcades/{arcade}/events", params={"after_id": evs[1]["id"]}).json()["events"]
    assert [e["event"] for e in tail] == ["score_submitted", "prize_paid"]

    acct = client.get(f"/v1/accounts/{alice}").json()
    assert acct["nonce"] == 2
    assert acct["balance"] == 10**6 - 100 + 50
    assert client.get(f"/v1/accounts/{arcade}").json()["arcade"] == arcade


def test_receipt_lookup(client: TestClient) -> None:
    arcade = _open_arcade(client)
    r = _post(client, "alice", "ARCADE_PLAY", 2, {"arcade": arcade, "lamports": 100})
    tx_id = r.json()["tx_id"]
    rc = client.get(f"/v1/tx/{tx_id}").json()
    assert rc["ok"] is True and rc["tx_type"] == "ARCADE_PLAY"
    assert client.get("/v1/tx/deadbeef").status_code == 404


def test_ledger_errors_map_to_http_status(client: TestClient) -> None:
    arcade = _open_arcade(client)

    r = _post(client, "alice", "ARCADE_PLAY", 2, {"arcade": arcade, "lamports": 5})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "incorrect_payment_amount"

    r = _post(client, "mallory", "ARCADE_PRICE_SET", 1, {"arcade": arcade, "price_per_game": 1})
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "unauthorized"

    r = _post(client, "owner", "ARCADE_INITIALIZE", 3, {"name": "x", "max_top_scores": 1, "price_per_game": 1})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "already_initialized"

    r = _post(client, "owner", "ARCADE_PRICE_SET", 9, {"arcade": arcade, "price_per_game": 1})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "bad_nonce"

    bad = make_tx("alice", "ARCADE_PLAY", 2, {"arcade": arcade, "lamports": 100}, chain_id="wrong-chain")
    r = client.post("/v1/tx/submit", json=bad)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "bad_sig"

    assert client.get("/v1/arcades/nope").status_code == 404
    assert client.get("/v1/arcades/nope/top-scores").json()["error"]["code"] == "not_initialized"


def test_request_size_limit_returns_413(monkeypatch) -> None:
    monkeypatch.setenv("ARCADE_MAX_REQUEST_BYTES", "128")
    monkeypatch.delenv("ARCADE_SIZE_LIMIT_DISABLE", raising=False)

    c = TestClient(create_app(boot_runtime=False))
    r = c.post("/v1/tx/submit", json={"tx_type": "ARCADE_PLAY", "pad": "x" * 500})
    assert r.status_code == 413
    j = r.json()
    assert j.get("ok") is False
    assert j["error"].get("code") == "tx_too_large"


def test_routes_without_executor_are_not_ready(monkeypatch) -> None:
    monkeypatch.setenv("ARCADE_RL_READ_BURST", "1000")
    c = TestClient(create_app(boot_runtime=False))
    assert c.get("/v1/health").json() == {"ok": True, "ready": False}
    r = c.get("/v1/accounts/abc")
    assert r.status_code == 500
    assert r.json()["error"]["code"] == "not_ready"


def test_rate_limit_kicks_in(monkeypatch) -> None:
    monkeypatch.setenv("ARCADE_RL_READ_BURST", "2")
    monkeypatch.setenv("ARCADE_RL_READ_PER_SEC", "0")
    c = TestClient(create_app(boot_runtime=False))
    codes = [c.get("/v1/arcades/derive/x").status_code for _ in range(3)]
    assert codes[-1] == 429


def test_wildcard_cors_rejected_in_prod(monkeypatch) -> None:
    monkeypatch.setenv("ARCADE_MODE", "prod")
    monkeypatch.setenv("ARCADE_CORS_ORIGINS", "*")
    with pytest.raises(RuntimeError):
        create_app(boot_runtime=False)
