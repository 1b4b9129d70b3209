from datetime import datetime
from decimal import Decimal, InvalidOperation
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.errors import NotFound
from app.models.trip import Trip
from app.schemas.booking import CouponApplyRequest, CouponApplyOut
from app.services import booking_service, coupon_service, fare_service
from app.services.search_service import search_trips

router = APIRouter(tags=["public"])


@router.get("/public/trips/search")
def search(
    from_: str = Query(alias="from"),
    to: str = Query(),
    date: str = Query(),
    db: Session = Depends(get_db),
):
    """Trips between two locations on a date (YYYY-MM-DD), holidays excluded, full-route fares attached."""
    try:
        on_date = datetime.strptime(date, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")
    return {"items": search_trips(db, from_, to, on_date)}


@router.get("/public/trips/{trip_id}/fares")
def trip_fares(trip_id: str, boardingPointId: str, droppingPointId: str, db: Session = Depends(get_db)):
    trip = db.get(Trip, trip_id)
    if not trip:
        raise NotFound("TRIP_NOT_FOUND", "Trip not found")
    seg = fare_service.resolve_segment(db, trip, boardingPointId, droppingPointId)
    return {
        "tripId": trip.id,
        "fromStopId": seg.from_stop.id,
        "toStopId": seg.to_stop.id,
        "prices": {k: str(v) for k, v in fare_service.class_prices(seg.from_stop).items()},
    }


@router.get("/public/trips/{trip_id}/seats")
def trip_seats(trip_id: str, db: Session = Depends(get_db)):
    return {"tripId": trip_id, "seats": booking_service.seat_map(db, trip_id)}


@router.post("/public/coupons/apply", response_model=CouponApplyOut)
def apply_coupon(body: CouponApplyRequest, db: Session = Depends(get_db)):
    """Preview a coupon against a subtotal; usage is only counted when a booking commits."""
    try:
        subtotal = Decimal(body.subtotal)
    except InvalidOperation:
        raise HTTPException(status_code=400, detail="subtotal must be a number")
    d = coupon_service.apply_coupon(db, body.code, body.tripId, subtotal)
    return CouponApplyOut(code=d.code, subtotal=str(d.subtotal), discount=str(d.discount), finalAmount=str(d.final_amount))
