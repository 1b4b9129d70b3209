import hashlib
import hmac
from dataclasses import dataclass
import requests

@dataclass
class RazorpayConfig:
    key_id: str
    key_secret: str
    api_base: str = "https://api.razorpay.com/v1"
    timeout: int = 25

class RazorpayError(RuntimeError):
    pass

def hmac_sha256_hex(secret: str, msg: str | bytes) -> str:
    if isinstance(msg, str):
        msg = msg.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()

def checkout_signature(key_secret: str, order_id: str, payment_id: str) -> str:
    # Checkout handler signs "<order_id>|<payment_id>"
    return hmac_sha256_hex(key_secret, f"{order_id}|{payment_id}")

class RazorpayClient:
    def __init__(self, cfg: RazorpayConfig):
        self.cfg = cfg

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.cfg.api_base.rstrip('/')}{path}"
        try:
            r = requests.request(
                method=method.upper(),
                url=url,
                json=payload or {},
                auth=(self.cfg.key_id, self.cfg.key_secret),
                timeout=self.cfg.timeout,
            )
        except requests.RequestException as e:
            raise RazorpayError(f"Razorpay unreachable: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            raise RazorpayError(f"Razorpay {r.status_code}: {data}")
        return data

    def create_order(self, *, amount_paise: int, currency: str, receipt: str, notes: dict) -> dict:
        payload = {"amount": amount_paise, "currency": currency, "receipt": receipt, "notes": notes}
        return self.request("POST", "/orders", payload)

    def refund_payment(self, *, payment_id: str, amount_paise: int, notes: dict | None = None) -> dict:
        payload = {"amount": amount_paise, "notes": notes or {}}
        return self.request("POST", f"/payments/{payment_id}/refund", payload)
