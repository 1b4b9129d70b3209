from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

ACTIVE_BOOKING_STATUSES = ("PENDING_PAYMENT", "CONFIRMED")

class BookingGroup(Base):
    __tablename__ = "booking_groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_ref: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    trip_id: Mapped[str] = mapped_column(String(36), index=True)

    from_stop_id: Mapped[str] = mapped_column(String(36))
    to_stop_id: Mapped[str] = mapped_column(String(36))
    boarding_point_id: Mapped[str] = mapped_column(String(36))
    dropping_point_id: Mapped[str] = mapped_column(String(36))

    coupon_id: Mapped[str] = mapped_column(String(36), nullable=True, index=True)
    # coupon terms as applied; later coupon edits don't change this booking
    discount_type: Mapped[str] = mapped_column(String(20), nullable=True)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True)
    max_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="NPR")

    status: Mapped[str] = mapped_column(String(30), default="PENDING_PAYMENT", index=True)  # PENDING_PAYMENT, CONFIRMED, CANCELLED, REFUNDED
    hold_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    cancel_reason: Mapped[str] = mapped_column(String(200), nullable=True)  # user, expired, refund
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class SeatReservation(Base):
    """Claim of one seat on one trip by one booking group.

    hold_slot is 1 while the owning group is active and NULL once released;
    the unique key on (trip_id, seat_id, hold_slot) admits one live claim per seat.
    """
    __tablename__ = "seat_reservations"
    __table_args__ = (
        UniqueConstraint("trip_id", "seat_id", "hold_slot", name="uq_seat_reservation_live"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    trip_id: Mapped[str] = mapped_column(String(36), index=True)
    seat_id: Mapped[str] = mapped_column(String(36), index=True)
    booking_group_id: Mapped[str] = mapped_column(String(36), index=True)
    seat_class: Mapped[str] = mapped_column(String(20))
    fare: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    hold_slot: Mapped[int] = mapped_column(Integer, nullable=True, default=1)
    released_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
