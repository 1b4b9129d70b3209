"""Coupon validation and discount computation.

apply_coupon() is read-only: it returns a CouponDecision. The usage counter is
only moved by commit_usage(), which the booking engine calls inside the same
transaction that claims the seats.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from sqlalchemy import update, or_
from sqlalchemy.orm import Session
from app.core.clock import utcnow, as_utc
from app.core.errors import NotFound, ValidationFailed, Conflict
from app.models.coupon import Coupon
from app.models.trip import Trip

CENT = Decimal("0.01")


@dataclass
class CouponDecision:
    coupon_id: str
    code: str
    subtotal: Decimal
    discount: Decimal
    final_amount: Decimal
    discount_type: str
    discount_value: Decimal
    max_discount: Decimal | None = None


def compute_discount(terms, subtotal: Decimal) -> Decimal:
    """terms is a Coupon or a BookingGroup carrying the terms it was booked with."""
    subtotal = Decimal(subtotal)
    value = Decimal(terms.discount_value)
    if terms.discount_type == "PERCENTAGE":
        discount = (subtotal * value / Decimal(100)).quantize(CENT, rounding=ROUND_FLOOR)
        if terms.max_discount:
            discount = min(discount, Decimal(terms.max_discount))
    elif terms.discount_type == "FIXED_AMOUNT":
        discount = value
    else:
        raise ValidationFailed("COUPON_INVALID", f"Unsupported discount type {terms.discount_type!r}")
    return max(Decimal(0), min(discount, subtotal)).quantize(CENT)


def _has_remaining_usage(coupon: Coupon) -> bool:
    if coupon.usage_limit is None:
        return True
    return (coupon.usage_count or 0) < coupon.usage_limit


def apply_coupon(db: Session, code: str, trip_id: str, subtotal: Decimal, now: datetime | None = None) -> CouponDecision:
    now = now or utcnow()
    cleaned = (code or "").strip().upper()
    coupon = db.query(Coupon).filter(Coupon.code == cleaned).first() if cleaned else None
    if not coupon or not coupon.is_active:
        raise NotFound("COUPON_NOT_FOUND", "Coupon not found or inactive")

    if not (as_utc(coupon.valid_from) <= now <= as_utc(coupon.valid_until)):
        raise ValidationFailed("COUPON_EXPIRED", "Coupon is not currently valid")

    trip = db.get(Trip, trip_id)
    if not trip:
        raise NotFound("TRIP_NOT_FOUND", "Trip not found")
    scope = coupon.applicable_bus_ids
    if scope and trip.bus_id not in scope:
        raise ValidationFailed("COUPON_NOT_APPLICABLE", "Coupon is not applicable to this bus")

    subtotal = Decimal(subtotal).quantize(CENT)
    if coupon.min_booking_amount and subtotal < Decimal(coupon.min_booking_amount):
        raise ValidationFailed(
            "COUPON_MIN_AMOUNT_NOT_MET",
            "Booking amount does not meet the coupon minimum",
            minAmount=str(Decimal(coupon.min_booking_amount).quantize(CENT)),
        )

    if not _has_remaining_usage(coupon):
        raise Conflict("COUPON_USAGE_EXHAUSTED", "Coupon usage limit reached")

    discount = compute_discount(coupon, subtotal)
    return CouponDecision(
        coupon_id=coupon.id,
        code=coupon.code,
        subtotal=subtotal,
        discount=discount,
        final_amount=(subtotal - discount).quantize(CENT),
        discount_type=coupon.discount_type,
        discount_value=Decimal(coupon.discount_value),
        max_discount=Decimal(coupon.max_discount) if coupon.max_discount is not None else None,
    )


def commit_usage(db: Session, decision: CouponDecision) -> None:
    """Atomically count one use; the limit is re-checked by the UPDATE itself."""
    res = db.execute(
        update(Coupon)
        .where(
            Coupon.id == decision.coupon_id,
            or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
        )
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise Conflict("COUPON_USAGE_EXHAUSTED", "Coupon usage limit reached")
