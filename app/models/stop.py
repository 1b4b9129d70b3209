from decimal import Decimal
from sqlalchemy import String, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base

class Stop(Base):
    __tablename__ = "stops"
    __table_args__ = (
        UniqueConstraint("bus_id", "stop_index", name="uq_stop_bus_index"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(120))  # city / town label used by search
    stop_index: Mapped[int] = mapped_column(Integer)  # route order, 0-based
    arrival_time: Mapped[str] = mapped_column(String(5), nullable=True)    # HH:MM
    departure_time: Mapped[str] = mapped_column(String(5), nullable=True)  # HH:MM

    # Fare from this stop to the end of the route, per seat class (base currency)
    lower_seater_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    lower_sleeper_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    upper_sleeper_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)


class StopPoint(Base):
    __tablename__ = "stop_points"
    __table_args__ = (
        UniqueConstraint("stop_id", "type", "point_order", name="uq_stop_point_order"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    stop_id: Mapped[str] = mapped_column(String(36), index=True)
    type: Mapped[str] = mapped_column(String(10))  # BOARDING|DROPPING
    name: Mapped[str] = mapped_column(String(120))
    landmark: Mapped[str] = mapped_column(String(200), default="")
    time: Mapped[str] = mapped_column(String(5), nullable=True)  # HH:MM display time
    point_order: Mapped[int] = mapped_column(Integer, default=0)
