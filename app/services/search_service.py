from datetime import date
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.bus import Bus
from app.models.stop import Stop
from app.models.trip import Trip
from app.services import fare_service
from app.services.holiday_service import holiday_bus_ids


def _stops_named(db: Session, label: str) -> list[Stop]:
    return db.query(Stop).filter(func.lower(Stop.name) == (label or "").strip().lower()).all()


def search_trips(db: Session, start_location: str, end_location: str, on_date: date) -> list[dict]:
    """Trips on `on_date` whose route visits start before end, minus holiday buses."""
    starts = {s.bus_id: s for s in _stops_named(db, start_location)}
    ends = {s.bus_id: s for s in _stops_named(db, end_location)}
    bus_ids = [b for b in starts if b in ends and starts[b].stop_index < ends[b].stop_index]
    if not bus_ids:
        return []

    trips = db.query(Trip, Bus).join(Bus, Bus.id == Trip.bus_id).filter(
        Trip.bus_id.in_(bus_ids),
        Trip.trip_date == on_date,
        Trip.status == "SCHEDULED",
        Bus.is_active == True,
    ).all()
    off = holiday_bus_ids(db, bus_ids, on_date)

    out = []
    for trip, bus in trips:
        if bus.id in off:
            continue
        stops = fare_service.route_stops(db, bus.id)
        full_route = fare_service.class_prices(stops[0]) if stops else {}
        out.append({
            "tripId": trip.id,
            "busId": bus.id,
            "busNumber": bus.bus_number,
            "busName": bus.name,
            "tripDate": trip.trip_date.isoformat(),
            "fromStopId": starts[bus.id].id,
            "toStopId": ends[bus.id].id,
            "departureTime": starts[bus.id].departure_time,
            "arrivalTime": ends[bus.id].arrival_time,
            "prices": {k: str(v) for k, v in full_route.items()},
        })
    out.sort(key=lambda t: (t["departureTime"] or "", t["busNumber"]))
    return out
