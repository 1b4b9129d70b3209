from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.booking import BookingGroup
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingOut, BookedSeatOut, PassengerOut
from app.services import booking_service

router = APIRouter(tags=["bookings"])


def booking_out(db: Session, g: BookingGroup) -> BookingOut:
    seats = booking_service.booking_seats(db, g)
    pax = booking_service.booking_passengers(db, g)
    return BookingOut(
        id=g.id,
        bookingRef=g.booking_ref,
        tripId=g.trip_id,
        status=g.status,
        fromStopId=g.from_stop_id,
        toStopId=g.to_stop_id,
        boardingPointId=g.boarding_point_id,
        droppingPointId=g.dropping_point_id,
        subtotal=str(g.subtotal),
        discountAmount=str(g.discount_amount),
        totalAmount=str(g.total_amount),
        currency=g.currency,
        couponId=g.coupon_id,
        holdExpiresAt=g.hold_expires_at.isoformat() if g.hold_expires_at else None,
        cancelReason=g.cancel_reason,
        seats=[BookedSeatOut(seatId=s.id, seatNumber=s.seat_number, seatClass=r.seat_class, fare=str(r.fare)) for r, s in seats],
        passengers=[PassengerOut(name=p.name, age=p.age, gender=p.gender, seatId=p.seat_id) for p in pax],
    )


@router.post("/bookings", response_model=BookingOut, status_code=201)
def create_booking(body: BookingCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    g = booking_service.create_booking(
        db,
        user,
        trip_id=body.tripId,
        from_stop_id=body.fromStopId,
        to_stop_id=body.toStopId,
        boarding_point_id=body.boardingPointId,
        dropping_point_id=body.droppingPointId,
        seat_ids=body.seatIds,
        passengers=[p.model_dump() for p in body.passengers],
        coupon_code=body.couponCode,
    )
    return booking_out(db, g)


@router.get("/bookings/{booking_group_id}", response_model=BookingOut)
def get_booking(booking_group_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return booking_out(db, booking_service.get_booking(db, booking_group_id, user))


@router.post("/bookings/{booking_group_id}/cancel", response_model=BookingOut)
def cancel_booking(booking_group_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    g = booking_service.cancel_booking(db, booking_group_id, user)
    return booking_out(db, g)
