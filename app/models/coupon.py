from decimal import Decimal
from sqlalchemy import String, Integer, Boolean, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class Coupon(Base):
    __tablename__ = "coupons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(40), unique=True, index=True)  # stored upper-case
    description: Mapped[str] = mapped_column(String(300), default="")

    discount_type: Mapped[str] = mapped_column(String(20))  # PERCENTAGE|FIXED_AMOUNT
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    max_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True)  # PERCENTAGE only
    min_booking_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True)

    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    usage_limit: Mapped[int] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)

    # comma-separated bus ids; empty means every bus
    applicable_bus_ids_csv: Mapped[str] = mapped_column(String(2000), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def applicable_bus_ids(self):
        return [s.strip() for s in (self.applicable_bus_ids_csv or "").split(",") if s.strip()]
