"""HMAC-SHA256 request/callback signing shared by the eSewa-style adapters."""

import base64
import binascii
import hashlib
import hmac
import json

from ordering.errors import PaymentVerificationFailed

REQUEST_SIGNED_FIELDS = ("total_amount", "transaction_uuid", "product_code")


def format_amount(amount) -> str:
    """Render an amount the way it is both sent and signed: no trailing ``.0``."""
    value = float(amount)
    return str(int(value)) if value.is_integer() else f"{value:.2f}"


def signable_string(values: dict, field_names) -> str:
    return ",".join(f"{name}={values[name]}" for name in field_names)


def sign(message: str, secret: str) -> str:
    if not message or not secret:
        raise ValueError("Both message and secret are required to sign")
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def signature_matches(payload: dict, secret: str, product_code: str) -> bool:
    """Constant-time check of a callback payload's signature.

    The fields covered are the ones the payload names in ``signed_field_names``,
    falling back to the request fields when the provider omits the list.
    """
    names = payload.get("signed_field_names")
    field_names = names.split(",") if isinstance(names, str) and names else REQUEST_SIGNED_FIELDS
    values = {**payload, "product_code": payload.get("product_code", product_code)}
    try:
        message = signable_string(values, field_names)
    except KeyError:
        return False
    expected = sign(message, secret)
    return hmac.compare_digest(expected.encode("utf-8"), str(payload.get("signature") or "").encode("utf-8"))


def decode_token(token: str) -> dict:
    try:
        payload = json.loads(base64.b64decode(token, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError):
        raise PaymentVerificationFailed("Invalid payment token") from None
    if not isinstance(payload, dict) or not payload.get("transaction_uuid"):
        raise PaymentVerificationFailed("Invalid payment token")
    return payload


def encode_callback(
    transaction_uuid: str,
    total_amount,
    product_code: str,
    secret: str,
    status: str = "COMPLETE",
    transaction_code: str = "000AAA",
) -> str:
    """Build a signed callback token exactly as the provider sends it back."""
    payload = {
        "transaction_code": transaction_code,
        "status": status,
        "total_amount": format_amount(total_amount),
        "transaction_uuid": transaction_uuid,
        "product_code": product_code,
        "signed_field_names": "transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names",
    }
    payload["signature"] = sign(signable_string(payload, payload["signed_field_names"].split(",")), secret)
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
