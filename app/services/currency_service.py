from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from app.core.config import settings

CENT = Decimal("0.01")

# Currency each gateway actually charges in
SETTLEMENT_CURRENCY = {
    "RAZORPAY": "INR",
    "ESEWA": "NPR",
}


@dataclass
class ChargeAmounts:
    base_amount: Decimal
    base_currency: str
    charged_amount: Decimal
    charged_currency: str
    exchange_rate: Decimal | None = None


def conversion_rate(from_currency: str, to_currency: str) -> Decimal:
    if from_currency == to_currency:
        return Decimal(1)
    if (from_currency, to_currency) == ("NPR", "INR"):
        return Decimal(str(settings.NPR_TO_INR_RATE))
    raise ValueError(f"no conversion rate configured for {from_currency}->{to_currency}")


def calculate_payment_amounts(method: str, base_amount: Decimal) -> ChargeAmounts:
    base_currency = settings.BASE_CURRENCY
    base = Decimal(base_amount).quantize(CENT, rounding=ROUND_HALF_UP)
    charged_currency = SETTLEMENT_CURRENCY[method]
    if charged_currency == base_currency:
        return ChargeAmounts(base, base_currency, base, charged_currency)
    rate = conversion_rate(base_currency, charged_currency)
    charged = (base * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return ChargeAmounts(base, base_currency, charged, charged_currency, exchange_rate=rate)


def to_minor_units(amount: Decimal, currency: str) -> int:
    # Razorpay takes paise; eSewa takes rupees as a decimal string
    if currency == "INR":
        return int((Decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return int(Decimal(amount).quantize(Decimal(1), rounding=ROUND_HALF_UP))
