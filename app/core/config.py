from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "BusBook API"
    # Comma-separated origins for CORS; empty means the local web client dev servers
    CORS_ORIGINS: str = ""

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str = "sqlite:///./busbook.db"

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Booking holds
    BOOKING_HOLD_MINUTES: int = 15
    MAX_SEATS_PER_BOOKING: int = 6

    # Currency: fares are stored in the base currency; Razorpay settles in INR
    BASE_CURRENCY: str = "NPR"
    NPR_TO_INR_RATE: Decimal = Decimal("0.625")

    # Razorpay (orders REST API + checkout signature + webhooks)
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"
    RAZORPAY_SANDBOX: bool = False  # If True, skip the orders API and fabricate an order id (dev only)

    # eSewa ePay v2 (form POST + signed redirect)
    ESEWA_PRODUCT_CODE: str = "EPAYTEST"
    ESEWA_SECRET_KEY: str = ""
    ESEWA_FORM_URL: str = "https://rc-epay.esewa.com.np/api/epay/main/v2/form"
    ESEWA_SUCCESS_URL: str = ""  # e.g. https://api.example.com/api/v1/payments/esewa/callback
    ESEWA_FAILURE_URL: str = ""

    GATEWAY_TIMEOUT: int = 25

    @property
    def cors_origin_list(self) -> list[str]:
        if not self.CORS_ORIGINS.strip():
            return ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173", "http://127.0.0.1:5173"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
