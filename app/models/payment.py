from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_group_id: Mapped[str] = mapped_column(String(36), index=True)
    # Equals booking_group_id until the payment FAILS, then NULL: one live payment per group.
    live_booking_group_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)

    method: Mapped[str] = mapped_column(String(20))  # RAZORPAY|ESEWA
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    base_currency: Mapped[str] = mapped_column(String(3), default="NPR")
    charged_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    charged_currency: Mapped[str] = mapped_column(String(3))
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=True)

    gateway_order_id: Mapped[str] = mapped_column(String(120), index=True, nullable=True)
    gateway_payment_id: Mapped[str] = mapped_column(String(120), nullable=True)
    gateway_signature: Mapped[str] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")

    status: Mapped[str] = mapped_column(String(20), default="INITIATED", index=True)  # INITIATED, SUCCESS, FAILED, REFUNDED
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
