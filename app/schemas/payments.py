from pydantic import BaseModel
from typing import Literal, Optional


class PaymentInitiateRequest(BaseModel):
    bookingGroupId: str
    method: Literal["RAZORPAY", "ESEWA"]


class RazorpayVerifyRequest(BaseModel):
    # fields handed to the Checkout success handler
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentOut(BaseModel):
    paymentId: str
    bookingGroupId: str
    method: str
    status: str
    baseAmount: str
    baseCurrency: str
    chargedAmount: str
    chargedCurrency: str
    exchangeRate: Optional[str] = None
    bookingStatus: Optional[str] = None
