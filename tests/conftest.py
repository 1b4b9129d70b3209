import base64
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.clock import utcnow
from app.core.config import settings
from app.core.security import create_access_token
from app.db.session import Base, get_db
from app.main import app
from app.models.bus import Seat
from app.models.stop import Stop, StopPoint
from app.models import audit_log, booking, coupon, holiday, passenger, payment, trip, user  # noqa: F401
from app import seed
from app.services import esewa_client

ESEWA_TEST_SECRET = "8gBm/:&EnhH.1/q"


class Demo:
    """Handles on the seeded Kathmandu -> Pokhara route."""

    def __init__(self, db):
        self.db = db
        self.rider = seed.ensure_user(db, "rider@busbook.local", "customer", "Demo Rider")
        self.other = seed.ensure_user(db, "other@busbook.local", "customer", "Other Rider")
        self.admin = seed.ensure_user(db, "admin@busbook.local", "admin", "Admin")
        self.bus = seed.ensure_demo_bus(db)
        self.trips = seed.ensure_trips(db, self.bus, utcnow().date(), 10)
        self.trip = self.trips[1]
        self.coupon = seed.ensure_coupon(
            db, "SAVE10", discount_type="PERCENTAGE", discount_value=10,
            min_booking_amount=500, max_discount=300, usage_limit=100,
        )

    def stop(self, name: str) -> Stop:
        return self.db.query(Stop).filter(Stop.bus_id == self.bus.id, Stop.name == name).one()

    def point(self, stop_name: str, point_type: str) -> StopPoint:
        return self.db.query(StopPoint).filter(
            StopPoint.stop_id == self.stop(stop_name).id, StopPoint.type == point_type
        ).order_by(StopPoint.point_order.asc()).first()

    def seat(self, number: str) -> Seat:
        return self.db.query(Seat).filter(Seat.bus_id == self.bus.id, Seat.seat_number == number).one()

    def booking_kwargs(self, seat_numbers, board="Kathmandu", drop="Pokhara", trip=None) -> dict:
        seat_ids = [self.seat(n).id for n in seat_numbers]
        return {
            "trip_id": (trip or self.trip).id,
            "from_stop_id": self.stop(board).id,
            "to_stop_id": self.stop(drop).id,
            "boarding_point_id": self.point(board, "BOARDING").id,
            "dropping_point_id": self.point(drop, "DROPPING").id,
            "seat_ids": seat_ids,
            "passengers": [{"name": f"Passenger {n}", "age": 30, "gender": "FEMALE"} for n in seat_numbers],
        }


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def demo(db):
    return Demo(db)


@pytest.fixture
def gateways(monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", "rzp_test_key")
    monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", "rzp_test_secret")
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", "rzp_webhook_secret")
    monkeypatch.setattr(settings, "RAZORPAY_SANDBOX", True)
    monkeypatch.setattr(settings, "ESEWA_SECRET_KEY", ESEWA_TEST_SECRET)
    monkeypatch.setattr(settings, "ESEWA_PRODUCT_CODE", "EPAYTEST")
    return settings


@pytest.fixture
def client(session_factory):
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth(u) -> dict:
    return {"Authorization": f"Bearer {create_access_token(u.id)}"}


def esewa_data(transaction_uuid: str, status: str, total_amount: str, secret: str = ESEWA_TEST_SECRET) -> str:
    """Base64 payload eSewa appends to success_url."""
    fields = {
        "transaction_code": "000AWEO",
        "status": status,
        "total_amount": total_amount,
        "transaction_uuid": transaction_uuid,
        "product_code": "EPAYTEST",
        "signed_field_names": "transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names",
    }
    fields["signature"] = esewa_client.sign(secret, fields, fields["signed_field_names"])
    return base64.b64encode(json.dumps(fields).encode("utf-8")).decode("ascii")
