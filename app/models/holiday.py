from sqlalchemy import String, Date, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime, timezone
from app.db.session import Base

class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (
        UniqueConstraint("bus_id", "date", name="uq_holiday_bus_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    reason: Mapped[str] = mapped_column(String(200), default="")
    created_by: Mapped[str] = mapped_column(String(36), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
