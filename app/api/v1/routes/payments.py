from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.booking import BookingGroup
from app.models.payment import Payment
from app.models.user import User
from app.schemas.payments import PaymentInitiateRequest, RazorpayVerifyRequest, PaymentOut
from app.services import payment_service

router = APIRouter(tags=["payments"])


def payment_out(db: Session, p: Payment) -> PaymentOut:
    g = db.get(BookingGroup, p.booking_group_id)
    return PaymentOut(
        paymentId=p.id,
        bookingGroupId=p.booking_group_id,
        method=p.method,
        status=p.status,
        baseAmount=str(p.base_amount),
        baseCurrency=p.base_currency,
        chargedAmount=str(p.charged_amount),
        chargedCurrency=p.charged_currency,
        exchangeRate=str(p.exchange_rate) if p.exchange_rate is not None else None,
        bookingStatus=g.status if g else None,
    )


@router.post("/payments/initiate")
def initiate_payment(body: PaymentInitiateRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return payment_service.initiate(db, body.bookingGroupId, body.method, user)


@router.post("/payments/razorpay/verify", response_model=PaymentOut)
def razorpay_verify(body: RazorpayVerifyRequest, db: Session = Depends(get_db)):
    """Checkout success handler fields forwarded by the client; trusted only after signature check."""
    p = payment_service.handle_callback(db, "RAZORPAY", body.model_dump())
    return payment_out(db, p)


@router.post("/webhooks/razorpay")
async def razorpay_webhook(req: Request, db: Session = Depends(get_db)):
    body = await req.body()
    payment_service.handle_callback(
        db, "RAZORPAY", {"raw_body": body, "signature": req.headers.get("x-razorpay-signature", "")}
    )
    return {"ok": True}


@router.get("/payments/esewa/callback", response_model=PaymentOut)
def esewa_callback(data: str, db: Session = Depends(get_db)):
    """eSewa success_url redirect: ?data=<base64 signed JSON>."""
    p = payment_service.handle_callback(db, "ESEWA", {"data": data})
    return payment_out(db, p)
