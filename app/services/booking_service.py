"""Seat allocation and the booking-group transaction.

A seat on a trip is claimed by inserting a SeatReservation with hold_slot=1.
The unique key (trip_id, seat_id, hold_slot) lets exactly one live claim exist
per seat, so two purchasers racing for the same seat cannot both commit: the
loser's flush raises IntegrityError and the whole booking is rolled back.
"""
import logging
import random
import string
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.clock import utcnow, as_utc
from app.core.config import settings
from app.core.errors import NotFound, ValidationFailed, Conflict, StateViolation, SeatUnavailable
from app.models.booking import BookingGroup, SeatReservation
from app.models.bus import Seat
from app.models.passenger import Passenger
from app.models.payment import Payment
from app.models.stop import Stop
from app.models.trip import Trip
from app.models.user import User
from app.services import coupon_service, fare_service
from app.services.audit_service import log_audit
from app.services.holiday_service import is_operational

logger = logging.getLogger(__name__)

GENDERS = ("MALE", "FEMALE", "OTHER")
CENT = Decimal("0.01")


def make_booking_ref() -> str:
    return "BB-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=6))


def _validate_request(seat_ids: list[str], passengers: list[dict]) -> list[dict]:
    """Checks that need no database; returns passengers with a seat assigned."""
    if not seat_ids:
        raise ValidationFailed("NO_SEATS", "Select at least one seat")
    if len(seat_ids) > settings.MAX_SEATS_PER_BOOKING:
        raise ValidationFailed(
            "TOO_MANY_SEATS",
            f"At most {settings.MAX_SEATS_PER_BOOKING} seats can be booked at once",
        )
    if len(set(seat_ids)) != len(seat_ids):
        raise ValidationFailed("DUPLICATE_SEATS", "The same seat was selected more than once")
    if len(passengers) != len(seat_ids):
        raise ValidationFailed("PASSENGER_COUNT_MISMATCH", "Provide exactly one passenger per seat")

    explicit = [p.get("seatId") for p in passengers if p.get("seatId")]
    if len(set(explicit)) != len(explicit) or any(s not in seat_ids for s in explicit):
        raise ValidationFailed("INVALID_PASSENGER_SEAT", "Passenger seat assignments must be distinct selected seats")
    free = [s for s in seat_ids if s not in explicit]

    out = []
    for p in passengers:
        name = (p.get("name") or "").strip()
        age = p.get("age")
        gender = (p.get("gender") or "").strip().upper()
        if not name:
            raise ValidationFailed("INVALID_PASSENGER", "Passenger name is required")
        if not isinstance(age, int) or not 0 <= age <= 120:
            raise ValidationFailed("INVALID_PASSENGER", f"Invalid age for passenger {name}")
        if gender not in GENDERS:
            raise ValidationFailed("INVALID_PASSENGER", f"Invalid gender for passenger {name}")
        out.append({
            "seat_id": p.get("seatId") or free.pop(0),
            "name": name,
            "age": age,
            "gender": gender,
            "phone": (p.get("phone") or "").strip(),
            "email": (p.get("email") or "").strip().lower(),
        })
    return out


def load_bookable_trip(db: Session, trip_id: str, now: datetime | None = None) -> Trip:
    now = now or utcnow()
    trip = db.get(Trip, trip_id)
    if not trip:
        raise NotFound("TRIP_NOT_FOUND", "Trip not found")
    if trip.status != "SCHEDULED":
        raise ValidationFailed("TRIP_NOT_BOOKABLE", f"Trip is {trip.status.lower()} and cannot be booked")
    if trip.trip_date < now.date():
        raise ValidationFailed("TRIP_NOT_BOOKABLE", "Cannot book tickets for past dates")
    if not is_operational(db, trip.bus_id, trip.trip_date):
        raise ValidationFailed("TRIP_NOT_OPERATIONAL", "Bus does not operate on this date (holiday)")
    return trip


def release_seats(db: Session, group: BookingGroup, status: str, reason: str, now: datetime) -> None:
    group.status = status
    group.cancel_reason = reason
    group.cancelled_at = now
    db.execute(
        update(SeatReservation)
        .where(SeatReservation.booking_group_id == group.id, SeatReservation.hold_slot.is_not(None))
        .values(hold_slot=None, released_at=now)
        .execution_options(synchronize_session=False)
    )


def _fail_open_payment(db: Session, group: BookingGroup, reason: str) -> None:
    p = db.query(Payment).filter(Payment.live_booking_group_id == group.id).first()
    if p and p.status == "INITIATED":
        p.status = "FAILED"
        p.live_booking_group_id = None
        log_audit(db, actor_user_id="system", action="payment.failed", entity_type="payment", entity_id=p.id, details={"reason": reason})


def expire_group(db: Session, group: BookingGroup, now: datetime | None = None) -> bool:
    """PENDING_PAYMENT -> CANCELLED for a hold past its expiry; frees its seats.

    The status move is a conditional UPDATE, so a group confirmed by a payment
    after it was selected is left alone. Returns False in that case.
    """
    now = now or utcnow()
    moved = db.execute(
        update(BookingGroup)
        .where(
            BookingGroup.id == group.id,
            BookingGroup.status == "PENDING_PAYMENT",
            BookingGroup.hold_expires_at < now,
        )
        .values(status="CANCELLED")
        .execution_options(synchronize_session=False)
    ).rowcount
    if moved != 1:
        db.expire(group)
        logger.info("hold on %s no longer expirable, skipped", group.id)
        return False
    release_seats(db, group, "CANCELLED", "expired", now)
    _fail_open_payment(db, group, "hold_expired")
    log_audit(db, actor_user_id="system", action="booking.expired", entity_type="booking_group", entity_id=group.id)
    return True


def _release_expired_holds(db: Session, trip_id: str, seat_ids: list[str], now: datetime) -> int:
    stale_ids = db.execute(
        select(BookingGroup.id)
        .join(SeatReservation, SeatReservation.booking_group_id == BookingGroup.id)
        .where(
            SeatReservation.trip_id == trip_id,
            SeatReservation.seat_id.in_(seat_ids),
            SeatReservation.hold_slot.is_not(None),
            BookingGroup.status == "PENDING_PAYMENT",
            BookingGroup.hold_expires_at < now,
        )
        .distinct()
    ).scalars().all()
    if not stale_ids:
        return 0
    # group rows first, then their payment (same order as callbacks and cancellation)
    stale = db.execute(
        select(BookingGroup)
        .where(BookingGroup.id.in_(stale_ids))
        .order_by(BookingGroup.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().all()
    return sum(1 for g in stale if expire_group(db, g, now))


def _held_seats(db: Session, trip_id: str, seat_ids: list[str]) -> list[str]:
    rows = db.execute(
        select(SeatReservation.seat_id).where(
            SeatReservation.trip_id == trip_id,
            SeatReservation.seat_id.in_(seat_ids),
            SeatReservation.hold_slot.is_not(None),
        )
    ).all()
    return [r.seat_id for r in rows]


def _seat_unavailable(seats: list[Seat], held: list[str]) -> SeatUnavailable:
    ordered = [s for s in seats if s.id in set(held)]
    return SeatUnavailable([s.id for s in ordered], [s.seat_number for s in ordered])


def create_booking(
    db: Session,
    user: User,
    trip_id: str,
    from_stop_id: str,
    to_stop_id: str,
    boarding_point_id: str,
    dropping_point_id: str,
    seat_ids: list[str],
    passengers: list[dict],
    coupon_code: str | None = None,
    now: datetime | None = None,
) -> BookingGroup:
    now = now or utcnow()
    pax = _validate_request(seat_ids, passengers)

    trip = load_bookable_trip(db, trip_id, now)
    seg = fare_service.resolve_segment(db, trip, boarding_point_id, dropping_point_id, from_stop_id, to_stop_id)

    seats = db.query(Seat).filter(
        Seat.id.in_(seat_ids), Seat.bus_id == trip.bus_id, Seat.is_active == True
    ).all()
    if len(seats) != len(seat_ids):
        found = {s.id for s in seats}
        raise NotFound("SEAT_NOT_ON_BUS", "One or more seats are invalid or inactive",
                       seatIds=[s for s in seat_ids if s not in found])
    seats.sort(key=lambda s: seat_ids.index(s.id))

    fares = {s.id: fare_service.stop_price(seg.from_stop, s.seat_class) for s in seats}
    subtotal = sum(fares.values(), Decimal(0)).quantize(CENT)

    decision = None
    if coupon_code:
        decision = coupon_service.apply_coupon(db, coupon_code, trip.id, subtotal, now=now)
    discount = decision.discount if decision else Decimal("0.00")

    # booking_ref must be unique
    for _ in range(10):
        ref = make_booking_ref()
        if not db.query(BookingGroup.id).filter(BookingGroup.booking_ref == ref).first():
            break
    else:
        raise ValidationFailed("REF_ALLOCATION_FAILED", "could not allocate booking reference")

    try:
        _release_expired_holds(db, trip.id, seat_ids, now)
        held = _held_seats(db, trip.id, seat_ids)
        if held:
            raise _seat_unavailable(seats, held)

        group = BookingGroup(
            id=str(uuid.uuid4()),
            booking_ref=ref,
            user_id=user.id,
            trip_id=trip.id,
            from_stop_id=seg.from_stop.id,
            to_stop_id=seg.to_stop.id,
            boarding_point_id=seg.boarding_point.id,
            dropping_point_id=seg.dropping_point.id,
            coupon_id=decision.coupon_id if decision else None,
            discount_type=decision.discount_type if decision else None,
            discount_value=decision.discount_value if decision else None,
            max_discount=decision.max_discount if decision else None,
            subtotal=subtotal,
            discount_amount=discount,
            total_amount=(subtotal - discount).quantize(CENT),
            currency=settings.BASE_CURRENCY,
            status="PENDING_PAYMENT",
            hold_expires_at=now + timedelta(minutes=settings.BOOKING_HOLD_MINUTES),
        )
        db.add(group)
        for s in seats:
            db.add(SeatReservation(
                id=str(uuid.uuid4()),
                trip_id=trip.id,
                seat_id=s.id,
                booking_group_id=group.id,
                seat_class=s.seat_class,
                fare=fares[s.id],
                hold_slot=1,
            ))
        db.flush()

        for p in pax:
            db.add(Passenger(id=str(uuid.uuid4()), booking_group_id=group.id, **p))
        if decision:
            coupon_service.commit_usage(db, decision)

        log_audit(db, actor_user_id=user.id, action="booking.created", entity_type="booking_group", entity_id=group.id,
                  details={"ref": ref, "seats": [s.seat_number for s in seats], "total": group.total_amount})
        db.commit()
    except IntegrityError:
        db.rollback()
        held = _held_seats(db, trip.id, seat_ids)
        if not held:
            raise Conflict("BOOKING_CONFLICT", "Booking could not be committed, please retry")
        logger.info("seat claim lost on trip %s: %s", trip.id, held)
        raise _seat_unavailable(seats, held)
    except Exception:
        db.rollback()
        raise

    db.refresh(group)
    return group


def get_booking(db: Session, booking_group_id: str, user: User | None = None) -> BookingGroup:
    g = db.get(BookingGroup, booking_group_id)
    if not g or (user is not None and g.user_id != user.id and user.role not in ("admin", "superadmin")):
        raise NotFound("BOOKING_NOT_FOUND", "Booking not found")
    return g


def booking_seats(db: Session, group: BookingGroup) -> list[tuple[SeatReservation, Seat]]:
    return db.query(SeatReservation, Seat).join(Seat, Seat.id == SeatReservation.seat_id).filter(
        SeatReservation.booking_group_id == group.id
    ).order_by(Seat.seat_number.asc()).all()


def booking_passengers(db: Session, group: BookingGroup) -> list[Passenger]:
    return db.query(Passenger).filter(Passenger.booking_group_id == group.id).order_by(Passenger.created_at.asc()).all()


def reprice_booking(db: Session, group: BookingGroup) -> Decimal:
    """Recompute a group's total from its stop fares and the coupon terms stored on it."""
    stop = db.get(Stop, group.from_stop_id)
    seats = db.query(Seat).join(SeatReservation, SeatReservation.seat_id == Seat.id).filter(
        SeatReservation.booking_group_id == group.id
    ).all()
    subtotal = sum((fare_service.stop_price(stop, s.seat_class) for s in seats), Decimal(0)).quantize(CENT)
    discount = coupon_service.compute_discount(group, subtotal) if group.discount_type else Decimal(0)
    return (subtotal - discount).quantize(CENT)


def cancel_booking(db: Session, booking_group_id: str, user: User, now: datetime | None = None) -> BookingGroup:
    """PENDING_PAYMENT -> CANCELLED, CONFIRMED -> REFUNDED (through the payment orchestrator)."""
    now = now or utcnow()
    group = get_booking(db, booking_group_id, user)
    if group.status == "CONFIRMED":
        from app.services.payment_service import refund
        refund(db, group.id, actor_user_id=user.id, now=now)
        db.refresh(group)
        return group
    if group.status != "PENDING_PAYMENT":
        raise StateViolation("INVALID_STATE", f"Cannot cancel a booking that is {group.status}")

    g = db.execute(
        select(BookingGroup).where(BookingGroup.id == group.id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one()
    if g.status != "PENDING_PAYMENT":
        raise StateViolation("INVALID_STATE", f"Cannot cancel a booking that is {g.status}")
    release_seats(db, g, "CANCELLED", "user", now)
    _fail_open_payment(db, g, "booking_cancelled")
    log_audit(db, actor_user_id=user.id, action="booking.cancelled", entity_type="booking_group", entity_id=g.id)
    db.commit()
    db.refresh(g)
    return g


def seat_map(db: Session, trip_id: str, now: datetime | None = None) -> list[dict]:
    now = now or utcnow()
    trip = db.get(Trip, trip_id)
    if not trip:
        raise NotFound("TRIP_NOT_FOUND", "Trip not found")
    live = db.execute(
        select(SeatReservation.seat_id, BookingGroup.status, BookingGroup.hold_expires_at)
        .join(BookingGroup, BookingGroup.id == SeatReservation.booking_group_id)
        .where(SeatReservation.trip_id == trip.id, SeatReservation.hold_slot.is_not(None))
    ).all()
    taken = {
        r.seat_id for r in live
        if r.status == "CONFIRMED" or (r.status == "PENDING_PAYMENT" and as_utc(r.hold_expires_at) > now)
    }
    seats = db.query(Seat).filter(Seat.bus_id == trip.bus_id, Seat.is_active == True).order_by(
        Seat.deck.asc(), Seat.row.asc(), Seat.column.asc()
    ).all()
    return [
        {"id": s.id, "seatNumber": s.seat_number, "deck": s.deck, "seatClass": s.seat_class,
         "row": s.row, "column": s.column, "available": s.id not in taken}
        for s in seats
    ]
