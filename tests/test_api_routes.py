import json

from app.services.razorpay_client import checkout_signature, hmac_sha256_hex
from conftest import auth, esewa_data


def booking_body(demo, seats, board="Kathmandu", drop="Pokhara", **extra):
    kw = demo.booking_kwargs(seats, board=board, drop=drop)
    body = {
        "tripId": kw["trip_id"],
        "fromStopId": kw["from_stop_id"],
        "toStopId": kw["to_stop_id"],
        "boardingPointId": kw["boarding_point_id"],
        "droppingPointId": kw["dropping_point_id"],
        "seatIds": kw["seat_ids"],
        "passengers": kw["passengers"],
    }
    body.update(extra)
    return body


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_search_and_fares(client, demo):
    r = client.get("/api/v1/public/trips/search", params={
        "from": "Kathmandu", "to": "Pokhara", "date": demo.trip.trip_date.isoformat(),
    })
    assert r.status_code == 200
    items = r.json()["items"]
    assert [t["tripId"] for t in items] == [demo.trip.id]
    assert items[0]["busNumber"] == "BA-1-KHA-2345"

    r = client.get(f"/api/v1/public/trips/{demo.trip.id}/fares", params={
        "boardingPointId": demo.point("Mugling", "BOARDING").id,
        "droppingPointId": demo.point("Pokhara", "DROPPING").id,
    })
    assert r.status_code == 200
    assert r.json()["prices"] == {"LOWER_SEATER": "350.00", "LOWER_SLEEPER": "600.00", "UPPER_SLEEPER": "520.00"}


def test_search_rejects_bad_date(client, demo):
    r = client.get("/api/v1/public/trips/search", params={"from": "Kathmandu", "to": "Pokhara", "date": "17/10/2026"})
    assert r.status_code == 400


def test_fares_for_backwards_segment(client, demo):
    r = client.get(f"/api/v1/public/trips/{demo.trip.id}/fares", params={
        "boardingPointId": demo.point("Damauli", "BOARDING").id,
        "droppingPointId": demo.point("Mugling", "DROPPING").id,
    })
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_SEGMENT"
    assert r.json()["category"] == "VALIDATION"


def test_coupon_preview(client, demo):
    r = client.post("/api/v1/public/coupons/apply", json={"code": "save10", "tripId": demo.trip.id, "subtotal": "1000"})
    assert r.status_code == 200
    assert r.json() == {"code": "SAVE10", "subtotal": "1000.00", "discount": "100.00", "finalAmount": "900.00"}

    r = client.post("/api/v1/public/coupons/apply", json={"code": "NOPE", "tripId": demo.trip.id, "subtotal": "1000"})
    assert r.status_code == 404
    assert r.json()["code"] == "COUPON_NOT_FOUND"


def test_booking_requires_token(client, demo):
    r = client.post("/api/v1/bookings", json=booking_body(demo, ["A1"]))
    assert r.status_code == 401


def test_malformed_booking_body(client, demo):
    r = client.post("/api/v1/bookings", json={"tripId": demo.trip.id}, headers=auth(demo.rider))
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_REQUEST"


def test_book_then_conflict(client, demo):
    r = client.post("/api/v1/bookings", json=booking_body(demo, ["A1", "A2"], couponCode="SAVE10"), headers=auth(demo.rider))
    assert r.status_code == 201
    b = r.json()
    assert b["status"] == "PENDING_PAYMENT"
    assert b["totalAmount"] == "900.00"
    assert sorted(s["seatNumber"] for s in b["seats"]) == ["A1", "A2"]

    r = client.post("/api/v1/bookings", json=booking_body(demo, ["A2", "A3"]), headers=auth(demo.other))
    assert r.status_code == 409
    err = r.json()
    assert err["code"] == "SEAT_UNAVAILABLE"
    assert err["seatNumbers"] == ["A2"]

    seats = {s["seatNumber"]: s["available"] for s in client.get(f"/api/v1/public/trips/{demo.trip.id}/seats").json()["seats"]}
    assert seats["A1"] is False and seats["A2"] is False and seats["A3"] is True


def test_get_and_cancel_booking(client, demo):
    b = client.post("/api/v1/bookings", json=booking_body(demo, ["L1"]), headers=auth(demo.rider)).json()
    assert client.get(f"/api/v1/bookings/{b['id']}", headers=auth(demo.other)).status_code == 404
    assert client.get(f"/api/v1/bookings/{b['id']}", headers=auth(demo.rider)).json()["bookingRef"] == b["bookingRef"]

    r = client.post(f"/api/v1/bookings/{b['id']}/cancel", headers=auth(demo.rider))
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    r = client.post(f"/api/v1/bookings/{b['id']}/cancel", headers=auth(demo.rider))
    assert r.status_code == 409
    assert r.json()["category"] == "STATE_VIOLATION"


def test_razorpay_checkout_flow(client, demo, gateways):
    b = client.post("/api/v1/bookings", json=booking_body(demo, ["A1", "A2"], couponCode="SAVE10"), headers=auth(demo.rider)).json()
    r = client.post("/api/v1/payments/initiate", json={"bookingGroupId": b["id"], "method": "RAZORPAY"}, headers=auth(demo.rider))
    assert r.status_code == 200
    intent = r.json()
    assert intent["amount"] == "562.50"
    assert intent["currency"] == "INR"

    verify = {
        "razorpay_order_id": intent["orderId"],
        "razorpay_payment_id": "pay_API1",
        "razorpay_signature": checkout_signature("rzp_test_secret", intent["orderId"], "pay_API1"),
    }
    r = client.post("/api/v1/payments/razorpay/verify", json=verify)
    assert r.status_code == 200
    assert r.json()["status"] == "SUCCESS"
    assert r.json()["bookingStatus"] == "CONFIRMED"

    # gateway retries are acknowledged
    r = client.post("/api/v1/payments/razorpay/verify", json=verify)
    assert r.status_code == 200
    assert r.json()["bookingStatus"] == "CONFIRMED"

    r = client.post("/api/v1/payments/initiate", json={"bookingGroupId": b["id"], "method": "ESEWA"}, headers=auth(demo.rider))
    assert r.status_code == 409
    assert r.json()["code"] == "ALREADY_PAID"


def test_razorpay_webhook(client, demo, gateways):
    b = client.post("/api/v1/bookings", json=booking_body(demo, ["U1"]), headers=auth(demo.rider)).json()
    intent = client.post("/api/v1/payments/initiate", json={"bookingGroupId": b["id"], "method": "RAZORPAY"},
                         headers=auth(demo.rider)).json()
    body = json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_W1", "order_id": intent["orderId"], "amount": intent["amountMinor"]}}},
    }).encode("utf-8")

    r = client.post("/api/v1/webhooks/razorpay", content=body, headers={"x-razorpay-signature": "deadbeef"})
    assert r.status_code == 401
    assert r.json()["code"] == "SIGNATURE_MISMATCH"

    r = client.post("/api/v1/webhooks/razorpay", content=body,
                    headers={"x-razorpay-signature": hmac_sha256_hex("rzp_webhook_secret", body)})
    assert r.status_code == 200
    assert client.get(f"/api/v1/bookings/{b['id']}", headers=auth(demo.rider)).json()["status"] == "CONFIRMED"


def test_esewa_callback(client, demo, gateways):
    b = client.post("/api/v1/bookings", json=booking_body(demo, ["A5"]), headers=auth(demo.rider)).json()
    intent = client.post("/api/v1/payments/initiate", json={"bookingGroupId": b["id"], "method": "ESEWA"},
                         headers=auth(demo.rider)).json()
    params = intent["form"]["params"]
    assert params["total_amount"] == "500.00"

    r = client.get("/api/v1/payments/esewa/callback",
                   params={"data": esewa_data(params["transaction_uuid"], "COMPLETE", "500.00")})
    assert r.status_code == 200
    assert r.json()["status"] == "SUCCESS"
    assert r.json()["chargedCurrency"] == "NPR"
    assert r.json()["bookingStatus"] == "CONFIRMED"
