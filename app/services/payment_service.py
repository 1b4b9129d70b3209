"""Payment orchestration for booking groups.

Payment:      INITIATED -> SUCCESS | FAILED, SUCCESS -> REFUNDED
BookingGroup: PENDING_PAYMENT -> CONFIRMED on success, CONFIRMED -> REFUNDED on refund

Callbacks may arrive more than once. Only a payment still INITIATED is moved;
anything else is acknowledged without touching state.
"""
import json
import logging
import uuid
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.clock import utcnow, as_utc
from app.core.errors import Conflict, DomainError, ExternalError, NotFound, StateViolation
from app.models.booking import BookingGroup
from app.models.payment import Payment
from app.models.user import User
from app.services.audit_service import log_audit
from app.services.booking_service import get_booking, release_seats
from app.services.currency_service import calculate_payment_amounts
from app.services.payment_gateways import get_gateway

logger = logging.getLogger(__name__)


def live_payment(db: Session, booking_group_id: str) -> Payment | None:
    return db.query(Payment).filter(Payment.live_booking_group_id == booking_group_id).first()


def _meta(p: Payment) -> dict:
    try:
        return json.loads(p.metadata_json or "{}")
    except ValueError:
        return {}


def _set_meta(p: Payment, **items) -> None:
    data = _meta(p)
    data.update(items)
    p.metadata_json = json.dumps(data, ensure_ascii=False, default=str)


def _lock_group(db: Session, booking_group_id: str) -> BookingGroup:
    return db.execute(
        select(BookingGroup).where(BookingGroup.id == booking_group_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one()


def initiate(db: Session, booking_group_id: str, method: str, user: User, now: datetime | None = None) -> dict:
    now = now or utcnow()
    gateway = get_gateway(method)
    group = get_booking(db, booking_group_id, user)
    if group.status == "CONFIRMED" or live_payment(db, group.id):
        raise Conflict("ALREADY_PAID", "This booking already has a payment in progress or completed")

    # re-read under the group lock; cancellation and expiry take the same lock first
    group = _lock_group(db, group.id)
    if group.status == "CONFIRMED" or live_payment(db, group.id):
        db.rollback()
        raise Conflict("ALREADY_PAID", "This booking already has a payment in progress or completed")
    if group.status != "PENDING_PAYMENT":
        db.rollback()
        raise StateViolation("INVALID_STATE", f"Cannot pay for a booking that is {group.status}")
    if group.hold_expires_at and as_utc(group.hold_expires_at) < now:
        db.rollback()
        raise StateViolation("HOLD_EXPIRED", "Booking hold expired. Please re-book.")

    amounts = calculate_payment_amounts(gateway.method, group.total_amount)
    p = Payment(
        id=str(uuid.uuid4()),
        booking_group_id=group.id,
        live_booking_group_id=group.id,
        user_id=user.id,
        method=gateway.method,
        base_amount=amounts.base_amount,
        base_currency=amounts.base_currency,
        charged_amount=amounts.charged_amount,
        charged_currency=amounts.charged_currency,
        exchange_rate=amounts.exchange_rate,
        status="INITIATED",
    )
    try:
        db.add(p)
        db.flush()
        order_id, intent = gateway.create_intent(p, group)
        p.gateway_order_id = order_id
        _set_meta(p, intent=intent)
        log_audit(db, actor_user_id=user.id, action="payment.initiated", entity_type="payment", entity_id=p.id,
                  details={"bookingGroupId": group.id, "method": gateway.method, "charged": amounts.charged_amount,
                           "currency": amounts.charged_currency, "rate": amounts.exchange_rate})
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("ALREADY_PAID", "This booking already has a payment in progress or completed")
    except Exception:
        db.rollback()
        raise

    return {
        "paymentId": p.id,
        "bookingGroupId": group.id,
        "method": p.method,
        "status": p.status,
        "baseAmount": str(amounts.base_amount),
        "baseCurrency": amounts.base_currency,
        "amount": str(amounts.charged_amount),
        "currency": amounts.charged_currency,
        "exchangeRate": str(amounts.exchange_rate) if amounts.exchange_rate is not None else None,
        **intent,
    }


def _reject(db: Session, method: str, reason: str, details: dict) -> None:
    # rejected callbacks never touch payment/booking rows; the audit row gets its own commit
    db.rollback()
    logger.warning("rejected %s callback: %s", method, reason)
    log_audit(db, actor_user_id=method.lower(), action="payment.callback_rejected", entity_type="payment",
              entity_id=details.get("orderId", ""), details={"reason": reason, **details})
    db.commit()


def handle_callback(db: Session, method: str, payload: dict) -> Payment:
    gateway = get_gateway(method)
    try:
        result = gateway.verify_callback(payload)
    except DomainError as e:
        _reject(db, gateway.method, e.code, {})
        raise

    found = db.execute(
        select(Payment.id, Payment.booking_group_id)
        .where(Payment.method == gateway.method, Payment.gateway_order_id == result.order_id)
    ).first()
    if not found:
        _reject(db, gateway.method, "PAYMENT_NOT_FOUND", {"orderId": result.order_id})
        raise NotFound("PAYMENT_NOT_FOUND", "No payment matches this gateway order")

    # lock order is booking group, then payment (same as cancellation and the expiry sweep)
    group = _lock_group(db, found.booking_group_id)
    p = db.execute(
        select(Payment).where(Payment.id == found.id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one()

    if p.status != "INITIATED":
        # duplicate delivery
        if result.outcome == "SUCCESS" and p.status == "FAILED":
            logger.warning("late gateway success for failed payment %s (order %s)", p.id, result.order_id)
            log_audit(db, actor_user_id=gateway.method.lower(), action="payment.late_success", entity_type="payment",
                      entity_id=p.id, details={"gatewayPaymentId": result.payment_id})
        db.commit()
        return p
    if result.outcome == "PENDING":
        db.commit()
        return p

    if result.amount is not None and result.amount != p.charged_amount:
        _reject(db, gateway.method, "AMOUNT_MISMATCH",
                {"orderId": result.order_id, "expected": p.charged_amount, "received": result.amount})
        raise ExternalError("AMOUNT_MISMATCH", "Callback amount does not match the charged amount")

    p.gateway_payment_id = result.payment_id or p.gateway_payment_id
    p.gateway_signature = result.signature or p.gateway_signature
    _set_meta(p, callback=result.raw)

    if result.outcome == "SUCCESS" and group.status != "PENDING_PAYMENT":
        # paid after the booking was cancelled or expired: close the payment for reconciliation
        logger.warning("gateway success for %s booking %s (payment %s)", group.status, group.id, p.id)
        p.status = "FAILED"
        p.live_booking_group_id = None
        log_audit(db, actor_user_id=gateway.method.lower(), action="payment.late_success", entity_type="payment",
                  entity_id=p.id, details={"bookingGroupId": group.id, "bookingStatus": group.status,
                                           "gatewayPaymentId": result.payment_id})
    elif result.outcome == "SUCCESS":
        p.status = "SUCCESS"
        group.status = "CONFIRMED"
        log_audit(db, actor_user_id=gateway.method.lower(), action="payment.success", entity_type="payment",
                  entity_id=p.id, details={"bookingGroupId": group.id, "gatewayPaymentId": result.payment_id})
    else:
        p.status = "FAILED"
        p.live_booking_group_id = None
        log_audit(db, actor_user_id=gateway.method.lower(), action="payment.failed", entity_type="payment",
                  entity_id=p.id, details={"bookingGroupId": group.id, "reason": "gateway_reported"})
    db.commit()
    db.refresh(p)
    return p


def refund(db: Session, booking_group_id: str, actor_user_id: str, now: datetime | None = None) -> Payment:
    """SUCCESS -> REFUNDED together with CONFIRMED -> REFUNDED; seats are released."""
    now = now or utcnow()
    group = db.execute(
        select(BookingGroup).where(BookingGroup.id == booking_group_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not group:
        raise NotFound("BOOKING_NOT_FOUND", "Booking not found")
    p = live_payment(db, group.id)
    if group.status != "CONFIRMED" or not p or p.status != "SUCCESS":
        raise StateViolation("INVALID_STATE", "Only a confirmed, paid booking can be refunded")

    gateway = get_gateway(p.method)
    try:
        resp = gateway.refund(p)
    except ExternalError:
        db.rollback()
        logger.warning("refund failed for payment %s", p.id)
        raise

    p.status = "REFUNDED"
    _set_meta(p, refund=resp, refundedAt=now.isoformat())
    release_seats(db, group, "REFUNDED", "refund", now)
    log_audit(db, actor_user_id=actor_user_id, action="payment.refunded", entity_type="payment", entity_id=p.id,
              details={"bookingGroupId": group.id, "gateway": resp})
    db.commit()
    db.refresh(p)
    return p
