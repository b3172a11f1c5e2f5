"""Tests for the HTTP and WebSocket API."""

import pytest
from fastapi.testclient import TestClient

from api import create_app, status_for
from auth import AuthManager
from market import (
    BidTooLowError,
    ConflictError,
    DeadlinePassedError,
    EscrowError,
    InsufficientFundsError,
    NotApprovedError,
    NotFoundError,
    UnauthorizedError,
)

from conftest import ALICE, BOB, CAROL, COLLECTION, CURRENCY, DAY, ETHER, FEE, START

class SignatureVerifier:
    def verify_message(self, address, signature, message):
        return signature == f"signed:{address}:{message}"

@pytest.fixture
def client(marketplace):
    app = create_app(marketplace, AuthManager(SignatureVerifier(), secret="test-secret"))
    with TestClient(app) as client:
        yield client

def login(client, address):
    challenge = client.post("/auth/challenge", json={"address": address}).json()
    response = client.post("/auth/login", json={
        "challenge_id": challenge["challenge_id"],
        "address": address,
        "signature": f"signed:{address}:{challenge['message']}"
    })
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}

def listing(asset_id=1, **overrides):
    body = {
        "asset_collection": COLLECTION,
        "asset_id": asset_id,
        "price": ETHER,
        "currency": CURRENCY,
    }
    body.update(overrides)
    return body

@pytest.mark.parametrize("error, code", [
    (NotFoundError("x"), 404),
    (UnauthorizedError("x"), 403),
    (BidTooLowError(1, 2), 400),
    (ConflictError("x"), 409),
    (DeadlinePassedError("x"), 409),
    (InsufficientFundsError("0xA", 1), 402),
    (NotApprovedError("x"), 402),
    (EscrowError("x"), 502),
])
def test_error_status_mapping(error, code):
    assert status_for(error) == code

def test_fee_settings(client):
    response = client.get("/system/fees")

    assert response.status_code == 200
    assert response.json()["fee_address"] == FEE
    assert response.json()["default_fee"] == 1250

def test_health(client, owned_asset):
    headers = login(client, ALICE)
    owned_asset(1)
    client.post("/market/items", json=listing(), headers=headers)

    health = client.get("/system/health").json()

    assert health["status"] == "healthy"
    assert health["active_listings"] == 1
    assert health["events_published"] == 1

def test_mutations_require_authentication(client):
    response = client.post("/market/items", json=listing())

    assert response.status_code in (401, 403)

def test_login_with_bad_signature(client):
    challenge = client.post("/auth/challenge", json={"address": ALICE}).json()

    response = client.post("/auth/login", json={
        "challenge_id": challenge["challenge_id"],
        "address": ALICE,
        "signature": "forged"
    })

    assert response.status_code == 401

def test_verify_and_logout(client):
    headers = login(client, ALICE)

    assert client.get("/auth/verify", headers=headers).json() == {"valid": True, "address": ALICE}
    assert client.post("/auth/logout", headers=headers).json() == {"success": True}
    assert client.get("/auth/verify", headers=headers).status_code == 401

def test_list_and_buy(client, owned_asset, ledger):
    alice = login(client, ALICE)
    bob = login(client, BOB)
    owned_asset(1)
    ledger.fund(BOB, ETHER)

    created = client.post("/market/items", json=listing(), headers=alice)
    assert created.status_code == 201
    assert created.json()["offeror"] == ALICE

    items = client.get("/market/items").json()
    assert [item["asset_id"] for item in items] == [1]
    assert [item["asset_id"] for item in client.get("/market/me/listed", headers=alice).json()] == [1]

    bought = client.post("/market/items/1/buy", headers=bob)
    assert bought.status_code == 200
    assert bought.json()["owner"] == BOB
    assert client.get("/market/items").json() == []
    assert [item["asset_id"] for item in client.get("/market/me/nfts", headers=bob).json()] == [1]
    assert ledger.balance_of(ALICE, CURRENCY) == 875 * 10 ** 15

def test_market_errors_are_mapped(client, owned_asset):
    alice = login(client, ALICE)
    carol = login(client, CAROL)
    owned_asset(1)

    missing = client.get("/market/items/99")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "asset id 99 not found in the market"

    assert client.post("/market/items", json=listing(price=0), headers=alice).status_code == 400
    assert client.post("/market/items", json=listing(), headers=alice).status_code == 201
    assert client.post("/market/items/1/buy", headers=carol).status_code == 402
    assert client.post("/auctions/1/bids", json={"amount": ETHER}, headers=carol).status_code == 409
    assert client.delete(
        "/market/items/1", params={"asset_collection": COLLECTION}, headers=carol
    ).status_code == 403

def test_remove_listing(client, owned_asset, registry):
    alice = login(client, ALICE)
    owned_asset(1)
    client.post("/market/items", json=listing(), headers=alice)

    response = client.delete("/market/items/1", params={"asset_collection": COLLECTION}, headers=alice)

    assert response.status_code == 200
    assert response.json()["owner"] == ALICE
    assert registry.owner_of(COLLECTION, 1) == ALICE

def test_auction_flow(client, owned_asset, ledger, clock, registry):
    alice = login(client, ALICE)
    bob = login(client, BOB)
    carol = login(client, CAROL)
    owned_asset(1)
    ledger.fund(BOB, ETHER)
    ledger.fund(CAROL, ETHER)

    client.post("/market/items", json=listing(
        is_auction=True, minimum_offer=ETHER // 10, auction_deadline=START + DAY
    ), headers=alice)

    assert client.post("/auctions/1/bids", json={"amount": ETHER // 10}, headers=bob).status_code == 400
    assert client.post("/auctions/1/bids", json={"amount": ETHER // 2}, headers=bob).status_code == 200
    assert client.post("/auctions/1/bids", json={"amount": ETHER // 2 + 1}, headers=carol).status_code == 200
    raised = client.post("/auctions/1/bids/increase", json={"increment": 1}, headers=carol)
    assert raised.json()["locked_bid"] == ETHER // 2 + 2
    assert client.post("/auctions/1/close", headers=alice).status_code == 409

    clock.advance(DAY)
    closed = client.post("/auctions/1/close", headers=alice)

    assert closed.status_code == 200
    assert closed.json()["owner"] == CAROL
    assert registry.owner_of(COLLECTION, 1) == CAROL
    assert ledger.balance_of(BOB, CURRENCY) == ETHER

def test_revoke_and_cancel(client, owned_asset, ledger):
    alice = login(client, ALICE)
    bob = login(client, BOB)
    owned_asset(1)
    ledger.fund(BOB, ETHER)
    client.post("/market/items", json=listing(
        is_auction=True, minimum_offer=1, auction_deadline=START + DAY
    ), headers=alice)
    client.post("/auctions/1/bids", json={"amount": ETHER}, headers=bob)

    revoked = client.delete("/auctions/1/bids", headers=bob)
    assert revoked.json()["current_bidder"] is None
    assert ledger.balance_of(BOB, CURRENCY) == ETHER

    cancelled = client.post("/auctions/1/cancel", headers=alice)
    assert cancelled.json()["owner"] == ALICE

def test_private_sale_flow(client, owned_asset, ledger):
    alice = login(client, ALICE)
    bob = login(client, BOB)
    carol = login(client, CAROL)
    owned_asset(1)
    ledger.fund(BOB, ETHER)

    created = client.post("/private/items", json={
        "asset_collection": COLLECTION,
        "asset_id": 1,
        "price": ETHER,
        "currency": CURRENCY,
        "invited_buyer": BOB
    }, headers=alice)
    assert created.status_code == 201
    assert client.get("/private/items/1").json()["invited_buyer"] == BOB
    assert [i["asset_id"] for i in client.get("/private/me/invited", headers=bob).json()] == [1]
    assert [i["asset_id"] for i in client.get("/private/me/listed", headers=alice).json()] == [1]

    assert client.post("/private/items/1/buy", headers=carol).status_code == 403
    assert client.post("/private/items/1/buy", headers=bob).status_code == 200
    assert [i["asset_id"] for i in client.get("/private/me/nfts", headers=bob).json()] == [1]

def test_remove_private_listing(client, owned_asset):
    alice = login(client, ALICE)
    owned_asset(1)
    client.post("/private/items", json={
        "asset_collection": COLLECTION,
        "asset_id": 1,
        "price": ETHER,
        "currency": CURRENCY,
        "invited_buyer": BOB
    }, headers=alice)

    response = client.delete("/private/items/1", params={"asset_collection": COLLECTION}, headers=alice)

    assert response.status_code == 200
    assert response.json()["owner"] == ALICE

def test_creator_endpoints(client, ledger):
    bob = login(client, BOB)
    ledger.fund(BOB, 2 * ETHER)

    registered = client.post("/creators/registrations", json={
        "creator": CAROL, "price": ETHER, "currency": CURRENCY, "expiry": START + DAY
    }, headers=bob)
    assert registered.status_code == 201

    tipped = client.post("/creators/tips", json={
        "creator": CAROL, "amount": ETHER, "currency": CURRENCY
    }, headers=bob)
    assert tipped.json()["creator_amount"] == 875 * 10 ** 15

    registrations = client.get("/creators/me/registrations", headers=bob).json()
    assert [r["creator"] for r in registrations] == [CAROL]

    bad_tip = client.post("/creators/tips", json={"creator": CAROL, "amount": 0, "currency": CURRENCY}, headers=bob)
    assert bad_tip.status_code == 400

def test_event_stream(client, owned_asset):
    alice = login(client, ALICE)
    owned_asset(1)

    with client.websocket_connect("/ws/events") as websocket:
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json()["type"] == "pong"

        client.post("/market/items", json=listing(), headers=alice)

        message = websocket.receive_json()
        assert message["event"] == "MarketItemCreated"
        assert message["args"]["asset_id"] == 1
        assert message["args"]["offeror"] == ALICE
