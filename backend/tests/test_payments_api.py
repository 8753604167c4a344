from __future__ import annotations

import hashlib
import hmac
import json
import time

import pytest

from fakes import OTHER_PASSENGER_ID, PASSENGER_ID, bearer


def _signed(payload: dict, secret: str = "whsec_test") -> tuple[dict, bytes]:
    body = json.dumps(payload).encode()
    ts = int(time.time())
    sig = hmac.new(secret.encode(), f"{ts}.".encode() + body, hashlib.sha256).hexdigest()
    return {"Stripe-Signature": f"t={ts},v1={sig}", "Content-Type": "application/json"}, body


@pytest.mark.anyio
async def test_create_intent_returns_201(async_client, passenger_headers, make_trip, make_booking) -> None:
    trip = await make_trip(price_per_seat=8000)
    booking = await make_booking(trip, seats=2, status="accepted")

    resp = await async_client.post(
        "/passengers/payments/intents",
        json={"bookingId": str(booking.id)},
        headers={**passenger_headers, "X-Correlation-Id": "cid-pay-1"},
    )

    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["bookingId"] == str(booking.id)
    assert data["amount"] == 16000
    assert data["currency"] == "COP"
    assert data["provider"] == "stripe"
    assert data["status"] == "requires_payment_method"
    assert data["clientSecret"].startswith("pi_test_1")
    assert data["transactionId"]
    assert resp.headers["X-Correlation-Id"] == "cid-pay-1"


@pytest.mark.anyio
async def test_create_intent_requires_authentication(async_client) -> None:
    resp = await async_client.post("/passengers/payments/intents", json={"bookingId": "x"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"


@pytest.mark.anyio
async def test_create_intent_requires_passenger_role(async_client, driver_headers) -> None:
    resp = await async_client.post("/passengers/payments/intents", json={"bookingId": "x"}, headers=driver_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden_role"


@pytest.mark.anyio
@pytest.mark.parametrize("body", [{}, {"bookingId": ""}, {"bookingId": "x", "amount": 1}])
async def test_create_intent_validates_body(async_client, passenger_headers, body) -> None:
    resp = await async_client.post("/passengers/payments/intents", json=body, headers=passenger_headers)
    assert resp.status_code == 400
    err = resp.json()["error"]
    assert err["code"] == "invalid_schema"
    assert err["details"]["fields"]


@pytest.mark.anyio
async def test_create_intent_error_envelope(async_client, passenger_headers, make_trip, make_booking) -> None:
    trip = await make_trip()
    pending = await make_booking(trip)

    resp = await async_client.post(
        "/passengers/payments/intents", json={"bookingId": str(pending.id)}, headers=passenger_headers
    )
    assert resp.status_code == 409
    err = resp.json()["error"]
    assert err["code"] == "invalid_booking_state"
    assert err["details"]["current_status"] == "pending"
    assert err["details"]["correlation_id"] == resp.headers["X-Correlation-Id"]

    missing = await async_client.post(
        "/passengers/payments/intents", json={"bookingId": "65f000000000000000000000"}, headers=passenger_headers
    )
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "booking_not_found"


@pytest.mark.anyio
async def test_duplicate_intent_conflict(async_client, passenger_headers, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip, status="accepted")
    body = {"bookingId": str(booking.id)}

    first = await async_client.post("/passengers/payments/intents", json=body, headers=passenger_headers)
    second = await async_client.post("/passengers/payments/intents", json=body, headers=passenger_headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "duplicate_payment"


@pytest.mark.anyio
async def test_provider_failure_is_500(async_client, passenger_headers, provider, make_trip, make_booking) -> None:
    provider.create_error = RuntimeError("boom")
    trip = await make_trip()
    booking = await make_booking(trip, status="accepted")

    resp = await async_client.post(
        "/passengers/payments/intents", json={"bookingId": str(booking.id)}, headers=passenger_headers
    )
    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "payment_provider_error"


@pytest.mark.anyio
async def test_transaction_read_is_owner_only(async_client, passenger_headers, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip, status="accepted")
    created = await async_client.post(
        "/passengers/payments/intents", json={"bookingId": str(booking.id)}, headers=passenger_headers
    )
    tx_id = created.json()["transactionId"]

    mine = await async_client.get(f"/passengers/payments/transactions/{tx_id}", headers=passenger_headers)
    assert mine.status_code == 200
    assert mine.json()["amount"] == 16000
    assert mine.json()["providerPaymentIntentId"] == "pi_test_1"

    other = await async_client.get(
        f"/passengers/payments/transactions/{tx_id}", headers=bearer(OTHER_PASSENGER_ID, "passenger")
    )
    assert other.status_code == 403
    assert other.json()["error"]["code"] == "forbidden_owner"

    missing = await async_client.get("/passengers/payments/transactions/nope", headers=passenger_headers)
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_list_transactions_paginates(async_client, passenger_headers, make_trip, make_booking) -> None:
    for _ in range(3):
        trip = await make_trip()
        booking = await make_booking(trip, status="accepted")
        await async_client.post(
            "/passengers/payments/intents", json={"bookingId": str(booking.id)}, headers=passenger_headers
        )

    resp = await async_client.get(
        "/passengers/payments/transactions", params={"page": 2, "pageSize": 2}, headers=passenger_headers
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 3
    assert data["page"] == 2
    assert data["pageSize"] == 2
    assert data["totalPages"] == 2
    assert len(data["items"]) == 1
    assert all(item["passengerId"] == PASSENGER_ID for item in data["items"])

    bad = await async_client.get(
        "/passengers/payments/transactions", params={"status": "bogus"}, headers=passenger_headers
    )
    assert bad.status_code == 400


@pytest.mark.anyio
async def test_cancel_transaction_endpoint(async_client, passenger_headers, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip, status="accepted")
    created = await async_client.post(
        "/passengers/payments/intents", json={"bookingId": str(booking.id)}, headers=passenger_headers
    )
    tx_id = created.json()["transactionId"]

    resp = await async_client.post(f"/passengers/payments/transactions/{tx_id}/cancel", headers=passenger_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "canceled"

    again = await async_client.post(f"/passengers/payments/transactions/{tx_id}/cancel", headers=passenger_headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "transaction_not_cancelable"


@pytest.mark.anyio
async def test_stripe_webhook_updates_transaction(async_client, passenger_headers, transactions, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip, status="accepted")
    created = await async_client.post(
        "/passengers/payments/intents", json={"bookingId": str(booking.id)}, headers=passenger_headers
    )
    tx_id = created.json()["transactionId"]

    headers, body = _signed(
        {
            "id": "evt_1",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_test_1", "status": "succeeded"}},
        }
    )
    resp = await async_client.post("/payments/webhooks/stripe", content=body, headers=headers)

    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    assert (await transactions.find_by_id(tx_id)).status == "succeeded"


@pytest.mark.anyio
async def test_stripe_webhook_rejects_bad_signature(async_client) -> None:
    headers, body = _signed({"id": "evt_1", "type": "payment_intent.succeeded", "data": {}}, secret="whsec_wrong")
    resp = await async_client.post("/payments/webhooks/stripe", content=body, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_webhook_signature"

    unsigned = await async_client.post("/payments/webhooks/stripe", content=body)
    assert unsigned.status_code == 400


@pytest.mark.anyio
async def test_stripe_webhook_non_ascii_signature_is_bad_request(async_client) -> None:
    resp = await async_client.post(
        "/payments/webhooks/stripe",
        content=b'{"id": "evt_1"}',
        headers={"Stripe-Signature": "t=1,v1=é".encode("latin-1")},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_webhook_signature"
