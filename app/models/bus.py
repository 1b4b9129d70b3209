from sqlalchemy import String, Integer, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

SEAT_CLASSES = ("LOWER_SEATER", "LOWER_SLEEPER", "UPPER_SLEEPER")

class Bus(Base):
    __tablename__ = "buses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bus_number: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(120), default="")
    operator_user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (
        UniqueConstraint("bus_id", "seat_number", name="uq_seat_bus_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)
    seat_number: Mapped[str] = mapped_column(String(10))  # e.g. A1, L3, U7
    deck: Mapped[str] = mapped_column(String(10), default="LOWER")  # LOWER|UPPER
    seat_class: Mapped[str] = mapped_column(String(20), default="LOWER_SEATER")  # one of SEAT_CLASSES
    row: Mapped[int] = mapped_column(Integer, default=0)
    column: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
