"""Tests for HMAC-SHA256 payment signing and callback tokens."""

import base64
import json

import pytest
from ordering.errors import PaymentVerificationFailed
from payments.gateway.signing import (
    REQUEST_SIGNED_FIELDS,
    decode_token,
    encode_callback,
    format_amount,
    sign,
    signable_string,
    signature_matches,
)

SECRET = "8gBm/:&EnhH.1/q"


def _token(payload):
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


class TestSign:
    def test_known_signature(self):
        message = "total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST"
        assert sign(message, SECRET) == "5DZywcrTKD0gia/rsSMcrRHmJl+4Tbol6S+lWgdJ94E="

    def test_signable_string_follows_field_order(self):
        values = {"product_code": "EPAYTEST", "total_amount": "100", "transaction_uuid": "11-201-13"}
        assert signable_string(values, REQUEST_SIGNED_FIELDS) == (
            "total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST"
        )

    @pytest.mark.parametrize("message,secret", [("", SECRET), ("total_amount=1", "")])
    def test_signing_needs_message_and_secret(self, message, secret):
        with pytest.raises(ValueError):
            sign(message, secret)

    @pytest.mark.parametrize("amount,rendered", [(100, "100"), (1900.0, "1900"), (99.5, "99.50"), (12.3, "12.30")])
    def test_format_amount(self, amount, rendered):
        assert format_amount(amount) == rendered


class TestCallbackSignature:
    def test_encoded_callback_verifies(self):
        payload = decode_token(encode_callback("txn-001", 1900, "EPAYTEST", SECRET))
        assert payload["status"] == "COMPLETE"
        assert payload["total_amount"] == "1900"
        assert signature_matches(payload, SECRET, "EPAYTEST") is True

    def test_wrong_secret_does_not_verify(self):
        payload = decode_token(encode_callback("txn-001", 1900, "EPAYTEST", SECRET))
        assert signature_matches(payload, "another-secret", "EPAYTEST") is False

    def test_tampered_amount_does_not_verify(self):
        payload = decode_token(encode_callback("txn-001", 1900, "EPAYTEST", SECRET))
        payload["total_amount"] = "1"
        assert signature_matches(payload, SECRET, "EPAYTEST") is False

    def test_missing_signed_field_does_not_verify(self):
        payload = decode_token(encode_callback("txn-001", 1900, "EPAYTEST", SECRET))
        del payload["status"]
        assert signature_matches(payload, SECRET, "EPAYTEST") is False

    def test_missing_signature_does_not_verify(self):
        payload = decode_token(encode_callback("txn-001", 1900, "EPAYTEST", SECRET))
        del payload["signature"]
        assert signature_matches(payload, SECRET, "EPAYTEST") is False

    def test_request_fields_are_used_when_list_is_absent(self):
        payload = {"total_amount": "100", "transaction_uuid": "11-201-13"}
        payload["signature"] = sign("total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST", SECRET)
        assert signature_matches(payload, SECRET, "EPAYTEST") is True


class TestDecodeToken:
    @pytest.mark.parametrize("token", ["not base64!", _token(["a", "list"]), _token({"status": "COMPLETE"})])
    def test_unreadable_tokens(self, token):
        with pytest.raises(PaymentVerificationFailed) as exc:
            decode_token(token)
        assert exc.value.message == "Invalid payment token"

    def test_non_json_payload(self):
        with pytest.raises(PaymentVerificationFailed):
            decode_token(base64.b64encode(b"plain text").decode("ascii"))
