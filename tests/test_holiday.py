import uuid
from datetime import timedelta

import pytest

from app.core.errors import ValidationFailed
from app.models.holiday import Holiday
from app.services import booking_service, holiday_service
from app.services.search_service import search_trips


def add_holiday(db, bus, on_date):
    db.add(Holiday(id=str(uuid.uuid4()), bus_id=bus.id, date=on_date, reason="Dashain"))
    db.commit()


def test_operational_unless_holiday(db, demo):
    day = demo.trip.trip_date
    assert holiday_service.is_operational(db, demo.bus.id, day)
    add_holiday(db, demo.bus, day)
    assert not holiday_service.is_operational(db, demo.bus.id, day)
    assert holiday_service.is_operational(db, demo.bus.id, day + timedelta(days=1))


def test_holiday_bus_ids(db, demo):
    day = demo.trip.trip_date
    add_holiday(db, demo.bus, day)
    assert holiday_service.holiday_bus_ids(db, [demo.bus.id, "other-bus"], day) == {demo.bus.id}
    assert holiday_service.holiday_bus_ids(db, [], day) == set()


def test_search_hides_buses_on_holiday(db, demo):
    day = demo.trip.trip_date
    assert [t["tripId"] for t in search_trips(db, "Kathmandu", "Pokhara", day)] == [demo.trip.id]
    add_holiday(db, demo.bus, day)
    assert search_trips(db, "Kathmandu", "Pokhara", day) == []


def test_booking_rejected_on_holiday(db, demo):
    add_holiday(db, demo.bus, demo.trip.trip_date)
    with pytest.raises(ValidationFailed) as e:
        booking_service.create_booking(db, demo.rider, **demo.booking_kwargs(["A1"]))
    assert e.value.code == "TRIP_NOT_OPERATIONAL"
