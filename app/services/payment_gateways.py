"""Per-method gateway adapters.

Razorpay and eSewa differ in request shape, settlement currency and signature
scheme; each adapter exposes the same create_intent / verify_callback / refund
surface and is resolved once by get_gateway().
"""
import hmac
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from app.core.config import settings
from app.core.errors import ExternalError, SignatureMismatch, ValidationFailed
from app.models.booking import BookingGroup
from app.models.payment import Payment
from app.services import esewa_client
from app.services.currency_service import SETTLEMENT_CURRENCY, to_minor_units
from app.services.razorpay_client import (
    RazorpayClient, RazorpayConfig, RazorpayError, checkout_signature, hmac_sha256_hex,
)

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("RAZORPAY", "ESEWA")


@dataclass
class CallbackResult:
    order_id: str
    outcome: str  # SUCCESS|FAILED|PENDING
    payment_id: str | None = None
    signature: str | None = None
    amount: Decimal | None = None
    raw: dict = field(default_factory=dict)


def _to_decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value).replace(",", ""))
    except InvalidOperation:
        raise ValidationFailed("MALFORMED_CALLBACK", f"Invalid amount {value!r} in callback")


class RazorpayGateway:
    method = "RAZORPAY"
    currency = SETTLEMENT_CURRENCY["RAZORPAY"]

    SUCCESS_EVENTS = ("payment.captured", "order.paid")
    FAILURE_EVENTS = ("payment.failed",)

    def _client(self) -> RazorpayClient:
        if not (settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET):
            raise ExternalError("GATEWAY_NOT_CONFIGURED", "Razorpay is not configured (missing env vars)")
        return RazorpayClient(RazorpayConfig(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            api_base=settings.RAZORPAY_API_BASE,
            timeout=settings.GATEWAY_TIMEOUT,
        ))

    def create_intent(self, payment: Payment, group: BookingGroup) -> tuple[str, dict]:
        amount_paise = to_minor_units(payment.charged_amount, payment.charged_currency)
        if settings.RAZORPAY_SANDBOX:
            order = {"id": f"order_sandbox_{payment.id.replace('-', '')[:14]}", "amount": amount_paise, "currency": self.currency}
        else:
            try:
                order = self._client().create_order(
                    amount_paise=amount_paise,
                    currency=self.currency,
                    receipt=group.booking_ref,
                    notes={"bookingGroupId": group.id, "paymentId": payment.id},
                )
            except RazorpayError as e:
                raise ExternalError("GATEWAY_ERROR", str(e))
        return str(order["id"]), {
            "orderId": order["id"],
            "amountMinor": order.get("amount", amount_paise),
            "razorpayKeyId": settings.RAZORPAY_KEY_ID,
        }

    def verify_callback(self, payload: dict) -> CallbackResult:
        if "raw_body" in payload:
            return self._verify_webhook(payload)
        order_id = payload.get("razorpay_order_id") or ""
        payment_id = payload.get("razorpay_payment_id") or ""
        signature = payload.get("razorpay_signature") or ""
        if not (order_id and payment_id and signature):
            raise ValidationFailed("MALFORMED_CALLBACK", "Missing Razorpay verification fields")
        if not settings.RAZORPAY_KEY_SECRET:
            raise ExternalError("GATEWAY_NOT_CONFIGURED", "Razorpay is not configured (missing env vars)")
        expected = checkout_signature(settings.RAZORPAY_KEY_SECRET, order_id, payment_id)
        if not hmac.compare_digest(expected, signature):
            raise SignatureMismatch("Invalid Razorpay signature")
        return CallbackResult(order_id=order_id, outcome="SUCCESS", payment_id=payment_id, signature=signature, raw=payload)

    def _verify_webhook(self, payload: dict) -> CallbackResult:
        body = payload["raw_body"]
        if isinstance(body, str):
            body = body.encode("utf-8")
        signature = payload.get("signature") or ""
        if not settings.RAZORPAY_WEBHOOK_SECRET:
            raise ExternalError("GATEWAY_NOT_CONFIGURED", "Razorpay webhook secret is not configured")
        if not signature or not hmac.compare_digest(hmac_sha256_hex(settings.RAZORPAY_WEBHOOK_SECRET, body), signature):
            raise SignatureMismatch("Invalid Razorpay webhook signature")

        try:
            event = json.loads(body.decode("utf-8") or "{}")
        except (ValueError, UnicodeDecodeError):
            raise ValidationFailed("MALFORMED_CALLBACK", "Webhook body is not JSON")
        entity = ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}
        order_id = entity.get("order_id") or ""
        if not order_id:
            raise ValidationFailed("MALFORMED_CALLBACK", "Webhook carries no order id")
        name = event.get("event") or ""
        if name in self.SUCCESS_EVENTS:
            outcome = "SUCCESS"
        elif name in self.FAILURE_EVENTS:
            outcome = "FAILED"
        else:
            outcome = "PENDING"
        amount = _to_decimal(entity.get("amount"))
        return CallbackResult(
            order_id=order_id,
            outcome=outcome,
            payment_id=entity.get("id"),
            signature=signature,
            amount=(amount / 100).quantize(Decimal("0.01")) if amount is not None else None,
            raw={"event": name, "entity": entity},
        )

    def refund(self, payment: Payment) -> dict:
        if settings.RAZORPAY_SANDBOX:
            return {"id": f"rfnd_sandbox_{payment.id.replace('-', '')[:14]}", "status": "processed"}
        if not payment.gateway_payment_id:
            raise ExternalError("GATEWAY_ERROR", "Razorpay payment id missing; cannot refund")
        try:
            return self._client().refund_payment(
                payment_id=payment.gateway_payment_id,
                amount_paise=to_minor_units(payment.charged_amount, payment.charged_currency),
                notes={"paymentId": payment.id},
            )
        except RazorpayError as e:
            raise ExternalError("GATEWAY_ERROR", str(e))


class EsewaGateway:
    method = "ESEWA"
    currency = SETTLEMENT_CURRENCY["ESEWA"]

    FAILURE_STATUSES = ("CANCELED", "NOT_FOUND", "FULL_REFUND")

    def _secret(self) -> str:
        if not settings.ESEWA_SECRET_KEY:
            raise ExternalError("GATEWAY_NOT_CONFIGURED", "eSewa is not configured (missing env vars)")
        return settings.ESEWA_SECRET_KEY

    def create_intent(self, payment: Payment, group: BookingGroup) -> tuple[str, dict]:
        transaction_uuid = f"{group.booking_ref}-{payment.id[:8]}"
        form = esewa_client.build_form(
            form_url=settings.ESEWA_FORM_URL,
            secret_key=self._secret(),
            product_code=settings.ESEWA_PRODUCT_CODE,
            amount=f"{Decimal(payment.charged_amount):.2f}",
            transaction_uuid=transaction_uuid,
            success_url=settings.ESEWA_SUCCESS_URL,
            failure_url=settings.ESEWA_FAILURE_URL,
        )
        return transaction_uuid, {"form": form}

    def verify_callback(self, payload: dict) -> CallbackResult:
        data = payload.get("data")
        if not data:
            raise ValidationFailed("MALFORMED_CALLBACK", "Missing eSewa callback data")
        try:
            fields = esewa_client.decode_callback(data)
        except esewa_client.EsewaError as e:
            raise ValidationFailed("MALFORMED_CALLBACK", str(e))
        if not esewa_client.verify(self._secret(), fields):
            raise SignatureMismatch("Invalid eSewa signature")
        if fields.get("product_code") != settings.ESEWA_PRODUCT_CODE:
            raise SignatureMismatch("eSewa product code mismatch")

        status = str(fields.get("status") or "").upper()
        if status == "COMPLETE":
            outcome = "SUCCESS"
        elif status in self.FAILURE_STATUSES:
            outcome = "FAILED"
        else:
            outcome = "PENDING"
        return CallbackResult(
            order_id=str(fields.get("transaction_uuid") or ""),
            outcome=outcome,
            payment_id=fields.get("transaction_code"),
            signature=fields.get("signature"),
            amount=_to_decimal(fields.get("total_amount")),
            raw=fields,
        )

    def refund(self, payment: Payment) -> dict:
        # eSewa ePay has no refund API; settled out of band by the merchant
        logger.info("eSewa payment %s marked for manual refund", payment.id)
        return {"manual": True, "transactionCode": payment.gateway_payment_id}


GATEWAYS = {
    "RAZORPAY": RazorpayGateway,
    "ESEWA": EsewaGateway,
}


def get_gateway(method: str):
    cls = GATEWAYS.get((method or "").upper())
    if not cls:
        raise ValidationFailed("UNSUPPORTED_PAYMENT_METHOD", f"Unsupported payment method {method!r}")
    return cls()
