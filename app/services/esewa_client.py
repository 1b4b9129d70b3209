"""eSewa ePay v2 signing.

Requests and the success redirect are signed with HMAC-SHA256 (base64) over
"field=value" pairs joined by commas, in the order given by signed_field_names.
"""
import base64
import hashlib
import hmac
import json

REQUEST_SIGNED_FIELDS = "total_amount,transaction_uuid,product_code"
# a callback signature must bind the outcome, not just the request fields
CALLBACK_REQUIRED_FIELDS = ("transaction_code", "status", "total_amount", "transaction_uuid", "product_code")


class EsewaError(RuntimeError):
    pass


def signing_string(fields: dict, signed_field_names: str) -> str:
    parts = []
    for name in signed_field_names.split(","):
        name = name.strip()
        if name not in fields:
            raise EsewaError(f"signed field {name!r} missing")
        parts.append(f"{name}={fields[name]}")
    return ",".join(parts)


def sign(secret_key: str, fields: dict, signed_field_names: str = REQUEST_SIGNED_FIELDS) -> str:
    msg = signing_string(fields, signed_field_names)
    digest = hmac.new(secret_key.encode("utf-8"), msg.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def build_form(*, form_url: str, secret_key: str, product_code: str, amount: str, transaction_uuid: str,
               success_url: str, failure_url: str) -> dict:
    params = {
        "amount": amount,
        "tax_amount": "0",
        "total_amount": amount,
        "transaction_uuid": transaction_uuid,
        "product_code": product_code,
        "product_service_charge": "0",
        "product_delivery_charge": "0",
        "success_url": success_url,
        "failure_url": failure_url,
        "signed_field_names": REQUEST_SIGNED_FIELDS,
    }
    params["signature"] = sign(secret_key, params)
    return {"formUrl": form_url, "params": params}


def decode_callback(data_b64: str) -> dict:
    """eSewa redirects to success_url with ?data=<base64 JSON>."""
    try:
        raw = base64.b64decode(data_b64 + "=" * (-len(data_b64) % 4))
        out = json.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise EsewaError("malformed eSewa callback data") from e
    if not isinstance(out, dict):
        raise EsewaError("malformed eSewa callback data")
    return out


def verify(secret_key: str, fields: dict, required=CALLBACK_REQUIRED_FIELDS) -> bool:
    received = fields.get("signature") or ""
    names = fields.get("signed_field_names") or ""
    if not received or not names:
        return False
    if not set(required) <= {n.strip() for n in names.split(",")}:
        return False
    try:
        expected = sign(secret_key, fields, names)
    except EsewaError:
        return False
    return hmac.compare_digest(expected, received)
