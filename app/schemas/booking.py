from pydantic import BaseModel, Field
from typing import List, Literal, Optional

class PassengerIn(BaseModel):
    name: str
    age: int = Field(ge=0, le=120)
    gender: Literal["MALE", "FEMALE", "OTHER"]
    phone: Optional[str] = ""
    email: Optional[str] = ""
    seatId: Optional[str] = None

class BookingCreate(BaseModel):
    tripId: str
    fromStopId: str
    toStopId: str
    boardingPointId: str
    droppingPointId: str
    seatIds: List[str] = Field(min_length=1)
    passengers: List[PassengerIn]
    couponCode: Optional[str] = None

class BookedSeatOut(BaseModel):
    seatId: str
    seatNumber: str
    seatClass: str
    fare: str

class PassengerOut(BaseModel):
    name: str
    age: int
    gender: str
    seatId: str

class BookingOut(BaseModel):
    id: str
    bookingRef: str
    tripId: str
    status: str
    fromStopId: str
    toStopId: str
    boardingPointId: str
    droppingPointId: str
    subtotal: str
    discountAmount: str
    totalAmount: str
    currency: str = "NPR"
    couponId: Optional[str] = None
    holdExpiresAt: Optional[str] = None
    cancelReason: Optional[str] = None
    seats: List[BookedSeatOut] = []
    passengers: List[PassengerOut] = []

class CouponApplyRequest(BaseModel):
    code: str
    tripId: str
    subtotal: str

class CouponApplyOut(BaseModel):
    code: str
    subtotal: str
    discount: str
    finalAmount: str
