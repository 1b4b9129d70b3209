import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.db.session import SessionLocal
from app.models.user import User
from app.models.bus import Bus, Seat
from app.models.stop import Stop, StopPoint
from app.models.trip import Trip
from app.models.coupon import Coupon

logger = logging.getLogger(__name__)

DEMO_BUS_NUMBER = "BA-1-KHA-2345"

# name, arrival, departure, (lower seater, lower sleeper, upper sleeper) fare to end of route
DEMO_STOPS = [
    ("Kathmandu", None, "06:30", ("500.00", "800.00", "700.00")),
    ("Mugling", "09:45", "10:15", ("350.00", "600.00", "520.00")),
    ("Damauli", "11:30", "11:45", ("200.00", "350.00", "300.00")),
    ("Pokhara", "13:30", None, ("0.00", "0.00", "0.00")),
]

# stop name -> [(type, point name, landmark, time)]
DEMO_POINTS = {
    "Kathmandu": [
        ("BOARDING", "Kalanki", "Kalanki Chowk", "06:30"),
        ("BOARDING", "Gongabu", "New Bus Park", "06:50"),
    ],
    "Mugling": [
        ("BOARDING", "Mugling Bazaar", "Bridge", "10:15"),
        ("DROPPING", "Mugling Bazaar", "Bridge", "09:45"),
    ],
    "Damauli": [
        ("BOARDING", "Damauli Chowk", "", "11:45"),
        ("DROPPING", "Damauli Chowk", "", "11:30"),
    ],
    "Pokhara": [
        ("DROPPING", "Prithvi Chowk", "Tourist Bus Park", "13:30"),
        ("DROPPING", "Lakeside", "Barahi Temple", "13:50"),
    ],
}

# seat number, deck, class, row, column
DEMO_SEATS = (
    [(f"A{i}", "LOWER", "LOWER_SEATER", (i - 1) // 2, (i - 1) % 2) for i in range(1, 9)]
    + [(f"L{i}", "LOWER", "LOWER_SLEEPER", 4 + (i - 1) // 2, (i - 1) % 2) for i in range(1, 5)]
    + [(f"U{i}", "UPPER", "UPPER_SLEEPER", (i - 1) // 2, (i - 1) % 2) for i in range(1, 7)]
)


def ensure_user(db: Session, email: str, role: str, name: str) -> User:
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(id=str(uuid.uuid4()), email=email, full_name=name, role=role, is_active=True)
    db.add(u)
    db.commit()
    return u


def ensure_demo_bus(db: Session, operator: User | None = None) -> Bus:
    bus = db.query(Bus).filter(Bus.bus_number == DEMO_BUS_NUMBER).first()
    if bus:
        return bus
    bus = Bus(
        id=str(uuid.uuid4()),
        bus_number=DEMO_BUS_NUMBER,
        name="Prithvi Highway Deluxe",
        operator_user_id=operator.id if operator else None,
        is_active=True,
    )
    db.add(bus)
    for number, deck, seat_class, row, col in DEMO_SEATS:
        db.add(Seat(
            id=str(uuid.uuid4()), bus_id=bus.id, seat_number=number, deck=deck,
            seat_class=seat_class, row=row, column=col, is_active=True,
        ))
    for idx, (name, arrival, departure, prices) in enumerate(DEMO_STOPS):
        stop = Stop(
            id=str(uuid.uuid4()),
            bus_id=bus.id,
            name=name,
            stop_index=idx,
            arrival_time=arrival,
            departure_time=departure,
            lower_seater_price=Decimal(prices[0]),
            lower_sleeper_price=Decimal(prices[1]),
            upper_sleeper_price=Decimal(prices[2]),
        )
        db.add(stop)
        order = {"BOARDING": 0, "DROPPING": 0}
        for point_type, point_name, landmark, at in DEMO_POINTS.get(name, []):
            db.add(StopPoint(
                id=str(uuid.uuid4()), stop_id=stop.id, type=point_type, name=point_name,
                landmark=landmark, time=at, point_order=order[point_type],
            ))
            order[point_type] += 1
    db.commit()
    return bus


def ensure_trips(db: Session, bus: Bus, start: date, days: int) -> list[Trip]:
    out = []
    for i in range(days):
        d = start + timedelta(days=i)
        trip = db.query(Trip).filter(Trip.bus_id == bus.id, Trip.trip_date == d).first()
        if not trip:
            trip = Trip(id=str(uuid.uuid4()), bus_id=bus.id, trip_date=d, status="SCHEDULED")
            db.add(trip)
        out.append(trip)
    db.commit()
    return out


def ensure_coupon(db: Session, code: str, **fields) -> Coupon:
    c = db.query(Coupon).filter(Coupon.code == code.upper()).first()
    if c:
        return c
    now = datetime.now(timezone.utc)
    values = {
        "description": "",
        "discount_type": "PERCENTAGE",
        "discount_value": Decimal("10"),
        "valid_from": now - timedelta(days=1),
        "valid_until": now + timedelta(days=365),
        "usage_count": 0,
        "is_active": True,
    }
    values.update(fields)
    c = Coupon(id=str(uuid.uuid4()), code=code.upper(), **values)
    db.add(c)
    db.commit()
    return c


def run(db=None, trip_days: int = 30):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("[seed] users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@busbook.local", "admin", "Admin")
        operator = ensure_user(db, "operator@busbook.local", "operator", "Operator")
        ensure_user(db, "rider@busbook.local", "customer", "Demo Rider")

        bus = ensure_demo_bus(db, operator)
        ensure_trips(db, bus, datetime.now(timezone.utc).date(), trip_days)
        ensure_coupon(
            db,
            "SAVE10",
            description="10% off bookings of 500 or more",
            discount_type="PERCENTAGE",
            discount_value=Decimal("10"),
            max_discount=Decimal("300"),
            min_booking_amount=Decimal("500"),
            usage_limit=1000,
        )
        logger.info("[seed] demo route %s ready", bus.bus_number)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
