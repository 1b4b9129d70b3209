from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.clock import utcnow
from app.core.errors import Conflict, NotFound, SeatUnavailable, StateViolation, ValidationFailed
from app.models.audit_log import AuditLog
from app.models.booking import BookingGroup, SeatReservation
from app.models.coupon import Coupon
from app.models.passenger import Passenger
from app.models.payment import Payment
from app.models.user import User
from app.services import booking_service, payment_service
from app.services.razorpay_client import checkout_signature


def live_claims(db, group):
    return db.query(SeatReservation).filter(
        SeatReservation.booking_group_id == group.id, SeatReservation.hold_slot.is_not(None)
    ).count()


def test_create_booking_holds_seats_and_prices_them(db, demo):
    g = booking_service.create_booking(db, demo.rider, **demo.booking_kwargs(["A1", "L1"]))
    assert g.status == "PENDING_PAYMENT"
    assert g.booking_ref.startswith("BB-")
    assert g.subtotal == Decimal("1300.00")
    assert g.discount_amount == Decimal("0.00")
    assert g.total_amount == Decimal("1300.00")
    assert g.currency == "NPR"
    assert live_claims(db, g) == 2
    assert db.query(Passenger).filter(Passenger.booking_group_id == g.id).count() == 2
    assert db.query(AuditLog).filter(AuditLog.action == "booking.created", AuditLog.entity_id == g.id).count() == 1


def test_hold_expiry_is_set_from_settings(db, demo):
    now = utcnow()
    g = booking_service.create_booking(db, demo.rider, now=now, **demo.booking_kwargs(["A1"]))
    assert abs((g.hold_expires_at.replace(tzinfo=None) - now.replace(tzinfo=None)) - timedelta(minutes=15)) < timedelta(seconds=1)


def test_total_matches_repricing_from_stored_rows(db, demo):
    g = booking_service.create_booking(
        db, demo.rider, coupon_code="save10", **demo.booking_kwargs(["A1", "A2"], board="Kathmandu", drop="Damauli")
    )
    assert g.subtotal == Decimal("1000.00")
    assert g.discount_amount == Decimal("100.00")
    assert g.total_amount == Decimal("900.00")
    assert booking_service.reprice_booking(db, g) == g.total_amount


def test_repricing_ignores_later_coupon_edits(db, demo):
    g = booking_service.create_booking(db, demo.rider, coupon_code="SAVE10", **demo.booking_kwargs(["A1", "A2"]))
    assert g.discount_type == "PERCENTAGE"
    assert g.discount_value == Decimal("10.00")
    assert g.max_discount == Decimal("300.00")

    demo.coupon.discount_type = "FIXED_AMOUNT"
    demo.coupon.discount_value = Decimal("50")
    db.commit()
    db.refresh(g)
    assert booking_service.reprice_booking(db, g) == Decimal("900.00") == g.total_amount


def test_coupon_usage_counted_with_booking(db, demo):
    booking_service.create_booking(db, demo.rider, coupon_code="SAVE10", **demo.booking_kwargs(["A1", "A2"]))
    db.refresh(demo.coupon)
    assert demo.coupon.usage_count == 1


def test_exhausted_coupon_rolls_back_whole_booking(db, demo):
    demo.coupon.usage_count = demo.coupon.usage_limit
    db.commit()
    with pytest.raises(Conflict) as e:
        booking_service.create_booking(db, demo.rider, coupon_code="SAVE10", **demo.booking_kwargs(["A1", "A2"]))
    assert e.value.code == "COUPON_USAGE_EXHAUSTED"
    assert db.query(SeatReservation).count() == 0


def test_second_purchaser_gets_seat_unavailable(session_factory, demo):
    s1, s2 = session_factory(), session_factory()
    try:
        u1 = s1.get(User, demo.rider.id)
        u2 = s2.get(User, demo.other.id)
        g1 = booking_service.create_booking(s1, u1, **demo.booking_kwargs(["A1", "A2"]))
        with pytest.raises(SeatUnavailable) as e:
            booking_service.create_booking(s2, u2, **demo.booking_kwargs(["A2", "A3"]))
        assert e.value.code == "SEAT_UNAVAILABLE"
        assert e.value.details["seatNumbers"] == ["A2"]
        assert e.value.details["seatIds"] == [demo.seat("A2").id]
        assert live_claims(s2, g1) == 2
        assert s2.query(SeatReservation).filter(SeatReservation.seat_id == demo.seat("A3").id).count() == 0
    finally:
        s1.close()
        s2.close()


def test_race_lost_at_insert_names_the_contested_seat(session_factory, demo, monkeypatch):
    """Both purchasers pass the pre-check; the unique claim decides."""
    s1, s2 = session_factory(), session_factory()
    try:
        booking_service.create_booking(s1, s1.get(User, demo.rider.id), **demo.booking_kwargs(["A1", "A2"]))

        real = booking_service._held_seats
        calls = []

        def stale_precheck(db, trip_id, seat_ids):
            calls.append(seat_ids)
            return [] if len(calls) == 1 else real(db, trip_id, seat_ids)

        monkeypatch.setattr(booking_service, "_held_seats", stale_precheck)
        with pytest.raises(SeatUnavailable) as e:
            booking_service.create_booking(
                s2, s2.get(User, demo.other.id), coupon_code="SAVE10", **demo.booking_kwargs(["A2", "A3"])
            )
        assert e.value.details["seatNumbers"] == ["A2"]
        assert len(calls) == 2
        assert s2.query(SeatReservation).filter(SeatReservation.seat_id == demo.seat("A3").id).count() == 0
        assert s2.get(Coupon, demo.coupon.id).usage_count == 0
    finally:
        s1.close()
        s2.close()


def test_expired_hold_is_released_for_the_next_purchaser(db, demo):
    t0 = utcnow()
    first = booking_service.create_booking(db, demo.rider, now=t0, **demo.booking_kwargs(["A1"]))
    second = booking_service.create_booking(
        db, demo.other, now=t0 + timedelta(minutes=16), **demo.booking_kwargs(["A1"])
    )
    db.refresh(first)
    assert first.status == "CANCELLED"
    assert first.cancel_reason == "expired"
    assert live_claims(db, first) == 0
    assert live_claims(db, second) == 1


def test_payment_landing_after_stale_select_keeps_the_booking(session_factory, demo, gateways, monkeypatch):
    """A hold paid between the stale-hold lookup and its release is not cancelled."""
    t0 = utcnow()
    s1, s2, s3 = session_factory(), session_factory(), session_factory()
    try:
        paid = booking_service.create_booking(s1, s1.get(User, demo.rider.id), now=t0, **demo.booking_kwargs(["A1"]))
        out = payment_service.initiate(s1, paid.id, "RAZORPAY", s1.get(User, demo.rider.id), now=t0)

        real = booking_service.expire_group

        def pay_then_expire(db, group, now=None):
            payment_service.handle_callback(s3, "RAZORPAY", {
                "razorpay_order_id": out["orderId"],
                "razorpay_payment_id": "pay_LATE1",
                "razorpay_signature": checkout_signature("rzp_test_secret", out["orderId"], "pay_LATE1"),
            })
            return real(db, group, now)

        monkeypatch.setattr(booking_service, "expire_group", pay_then_expire)
        with pytest.raises(SeatUnavailable):
            booking_service.create_booking(
                s2, s2.get(User, demo.other.id), now=t0 + timedelta(minutes=16), **demo.booking_kwargs(["A1"])
            )

        check = session_factory()
        try:
            g = check.get(BookingGroup, paid.id)
            assert g.status == "CONFIRMED"
            assert check.get(Payment, out["paymentId"]).status == "SUCCESS"
            assert live_claims(check, g) == 1
            assert check.query(BookingGroup).count() == 1
        finally:
            check.close()
    finally:
        s1.close()
        s2.close()
        s3.close()


def test_expire_group_skips_a_confirmed_group(db, demo):
    t0 = utcnow()
    g = booking_service.create_booking(db, demo.rider, now=t0, **demo.booking_kwargs(["A1"]))
    g.status = "CONFIRMED"
    db.commit()
    assert booking_service.expire_group(db, g, t0 + timedelta(minutes=30)) is False
    db.commit()
    db.refresh(g)
    assert g.status == "CONFIRMED"
    assert live_claims(db, g) == 1


def test_live_hold_still_blocks(db, demo):
    t0 = utcnow()
    booking_service.create_booking(db, demo.rider, now=t0, **demo.booking_kwargs(["A1"]))
    with pytest.raises(SeatUnavailable):
        booking_service.create_booking(db, demo.other, now=t0 + timedelta(minutes=14), **demo.booking_kwargs(["A1"]))


@pytest.mark.parametrize("seats,code", [
    (["A1", "A2", "A3", "A4", "A5", "A6", "A7"], "TOO_MANY_SEATS"),
    (["A1", "A1"], "DUPLICATE_SEATS"),
])
def test_request_shape_errors(db, demo, seats, code):
    kwargs = demo.booking_kwargs(sorted(set(seats)))
    kwargs["seat_ids"] = [demo.seat(n).id for n in seats]
    kwargs["passengers"] = [{"name": "P", "age": 20, "gender": "MALE"}] * len(seats)
    with pytest.raises(ValidationFailed) as e:
        booking_service.create_booking(db, demo.rider, **kwargs)
    assert e.value.code == code


def test_passenger_count_must_match(db, demo):
    kwargs = demo.booking_kwargs(["A1", "A2"])
    kwargs["passengers"] = kwargs["passengers"][:1]
    with pytest.raises(ValidationFailed) as e:
        booking_service.create_booking(db, demo.rider, **kwargs)
    assert e.value.code == "PASSENGER_COUNT_MISMATCH"


def test_explicit_passenger_seats(db, demo):
    kwargs = demo.booking_kwargs(["A1", "A2"])
    kwargs["passengers"] = [
        {"name": "Sita", "age": 28, "gender": "female"},
        {"name": "Ram", "age": 31, "gender": "MALE", "seatId": demo.seat("A1").id},
    ]
    g = booking_service.create_booking(db, demo.rider, **kwargs)
    by_name = {p.name: p.seat_id for p in booking_service.booking_passengers(db, g)}
    assert by_name == {"Ram": demo.seat("A1").id, "Sita": demo.seat("A2").id}


def test_seat_from_another_bus_is_rejected(db, demo):
    kwargs = demo.booking_kwargs(["A1"])
    kwargs["seat_ids"] = ["not-a-seat"]
    with pytest.raises(NotFound) as e:
        booking_service.create_booking(db, demo.rider, **kwargs)
    assert e.value.code == "SEAT_NOT_ON_BUS"
    assert e.value.details["seatIds"] == ["not-a-seat"]


def test_past_and_cancelled_trips_are_not_bookable(db, demo):
    with pytest.raises(ValidationFailed) as e:
        booking_service.create_booking(db, demo.rider, now=utcnow() + timedelta(days=3), **demo.booking_kwargs(["A1"]))
    assert e.value.code == "TRIP_NOT_BOOKABLE"

    demo.trip.status = "CANCELLED"
    db.commit()
    with pytest.raises(ValidationFailed) as e:
        booking_service.create_booking(db, demo.rider, **demo.booking_kwargs(["A1"]))
    assert e.value.code == "TRIP_NOT_BOOKABLE"


def test_same_seat_on_another_trip_is_free(db, demo):
    booking_service.create_booking(db, demo.rider, **demo.booking_kwargs(["A1"]))
    g = booking_service.create_booking(db, demo.other, **demo.booking_kwargs(["A1"], trip=demo.trips[2]))
    assert g.status == "PENDING_PAYMENT"


def test_cancel_pending_booking_releases_seats(db, demo):
    g = booking_service.create_booking(db, demo.rider, **demo.booking_kwargs(["A1", "A2"]))
    out = booking_service.cancel_booking(db, g.id, demo.rider)
    assert out.status == "CANCELLED"
    assert out.cancel_reason == "user"
    assert live_claims(db, g) == 0
    again = booking_service.create_booking(db, demo.other, **demo.booking_kwargs(["A2"]))
    assert again.status == "PENDING_PAYMENT"

    with pytest.raises(StateViolation) as e:
        booking_service.cancel_booking(db, g.id, demo.rider)
    assert e.value.code == "INVALID_STATE"


def test_other_riders_cannot_see_or_cancel(db, demo):
    g = booking_service.create_booking(db, demo.rider, **demo.booking_kwargs(["A1"]))
    with pytest.raises(NotFound):
        booking_service.get_booking(db, g.id, demo.other)
    with pytest.raises(NotFound):
        booking_service.cancel_booking(db, g.id, demo.other)
    assert booking_service.get_booking(db, g.id, demo.admin).id == g.id


def test_seat_map_availability(db, demo):
    t0 = utcnow()
    booking_service.create_booking(db, demo.rider, now=t0, **demo.booking_kwargs(["U1"]))
    seats = {s["seatNumber"]: s for s in booking_service.seat_map(db, demo.trip.id, now=t0)}
    assert len(seats) == 18
    assert seats["U1"]["available"] is False
    assert seats["U1"]["seatClass"] == "UPPER_SLEEPER"
    assert seats["U2"]["available"] is True

    later = {s["seatNumber"]: s for s in booking_service.seat_map(db, demo.trip.id, now=t0 + timedelta(minutes=30))}
    assert later["U1"]["available"] is True
