"""Stop-pair fare calculation.

Each Stop stores, per seat class, the fare from that stop to the end of the
route. A segment is charged at its boarding stop's fare for the seat's class;
the dropping stop only has to lie further along the route.
"""
from dataclasses import dataclass
from decimal import Decimal
from sqlalchemy.orm import Session
from app.core.errors import NotFound, ValidationFailed
from app.models.bus import SEAT_CLASSES
from app.models.stop import Stop, StopPoint
from app.models.trip import Trip

_PRICE_COLUMNS = {
    "LOWER_SEATER": "lower_seater_price",
    "LOWER_SLEEPER": "lower_sleeper_price",
    "UPPER_SLEEPER": "upper_sleeper_price",
}


@dataclass
class Segment:
    from_stop: Stop
    to_stop: Stop
    boarding_point: StopPoint
    dropping_point: StopPoint


def stop_price(stop: Stop, seat_class: str) -> Decimal:
    col = _PRICE_COLUMNS.get(seat_class)
    if not col:
        raise ValidationFailed("INVALID_SEAT_CLASS", f"Unknown seat class {seat_class!r}")
    return Decimal(getattr(stop, col) or 0).quantize(Decimal("0.01"))


def class_prices(stop: Stop) -> dict[str, Decimal]:
    return {c: stop_price(stop, c) for c in SEAT_CLASSES}


def _route_stop(db: Session, trip: Trip, stop_id: str) -> Stop:
    stop = db.get(Stop, stop_id)
    if not stop or stop.bus_id != trip.bus_id:
        raise NotFound("STOP_NOT_FOUND", "Stop is not on this trip's route")
    return stop


def _point(db: Session, point_id: str, expected_type: str) -> StopPoint:
    p = db.get(StopPoint, point_id)
    if not p:
        raise NotFound("STOP_POINT_NOT_FOUND", f"{expected_type.title()} point not found")
    if p.type != expected_type:
        raise ValidationFailed("INVALID_STOP_POINT", f"Selected point is not a {expected_type.lower()} point")
    return p


def resolve_segment(
    db: Session,
    trip: Trip,
    boarding_point_id: str,
    dropping_point_id: str,
    from_stop_id: str | None = None,
    to_stop_id: str | None = None,
) -> Segment:
    """Load and validate a boarding/dropping pair for a trip.

    When stop ids are given, the points must belong to those stops.
    Raises INVALID_SEGMENT unless the boarding stop precedes the dropping stop.
    """
    boarding = _point(db, boarding_point_id, "BOARDING")
    dropping = _point(db, dropping_point_id, "DROPPING")
    if from_stop_id is not None and boarding.stop_id != from_stop_id:
        raise ValidationFailed("INVALID_STOP_POINT", "Boarding point does not belong to the selected from-stop")
    if to_stop_id is not None and dropping.stop_id != to_stop_id:
        raise ValidationFailed("INVALID_STOP_POINT", "Dropping point does not belong to the selected to-stop")

    from_stop = _route_stop(db, trip, boarding.stop_id)
    to_stop = _route_stop(db, trip, dropping.stop_id)
    if from_stop.stop_index >= to_stop.stop_index:
        raise ValidationFailed(
            "INVALID_SEGMENT",
            "Boarding stop must come before the dropping stop on the route",
            fromStopIndex=from_stop.stop_index,
            toStopIndex=to_stop.stop_index,
        )
    return Segment(from_stop=from_stop, to_stop=to_stop, boarding_point=boarding, dropping_point=dropping)


def price(db: Session, trip: Trip, boarding_point_id: str, dropping_point_id: str, seat_class: str) -> Decimal:
    seg = resolve_segment(db, trip, boarding_point_id, dropping_point_id)
    return stop_price(seg.from_stop, seat_class)


def route_stops(db: Session, bus_id: str) -> list[Stop]:
    return db.query(Stop).filter(Stop.bus_id == bus_id).order_by(Stop.stop_index.asc()).all()
