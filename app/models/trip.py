from sqlalchemy import String, Date, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime, timezone
from app.db.session import Base

class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        UniqueConstraint("bus_id", "trip_date", name="uq_trip_bus_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)
    trip_date: Mapped[date] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(12), default="SCHEDULED")  # SCHEDULED|CANCELLED|COMPLETED
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
