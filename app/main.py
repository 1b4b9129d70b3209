from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.v1.api import api_router
from app.api.exception_handlers import register_exception_handlers

app = FastAPI(title=settings.APP_NAME, description="Seat holds, segment fares, coupons and Razorpay/eSewa checkout")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Razorpay-Signature"],
)

# DomainError subclasses render as {"code", "category", "detail", ...}
register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok"}
