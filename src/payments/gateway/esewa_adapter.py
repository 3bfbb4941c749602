"""eSewa payment gateway adapter.

Payment initiation signs ``total_amount,transaction_uuid,product_code`` with
the merchant secret and submits the payment form to the provider, which
answers with the URL the customer must be redirected to.

Callback verification runs four checks in order:
1. the base64 JSON envelope decodes;
2. its HMAC signature matches (constant-time);
3. the transaction was not reconciled before;
4. the provider's server-side status endpoint reports ``COMPLETE``.
The status endpoint is retried with exponential backoff on network errors and
5xx responses; a 4xx answer is final.
"""

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

import requests
import structlog

from ordering.errors import PaymentInitiationFailed, PaymentVerificationFailed, SignatureMismatch
from payments.gateway.port import PaymentGateway, RedirectDescriptor, VerificationResult
from payments.gateway.signing import (
    REQUEST_SIGNED_FIELDS,
    decode_token,
    format_amount,
    sign,
    signable_string,
    signature_matches,
)

logger = structlog.get_logger(__name__)

COMPLETE = "COMPLETE"


class GatewayConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class EsewaSettings:
    merchant_code: str
    secret_key: str
    payment_url: str
    verification_url: str
    frontend_url: str = ""
    initiation_timeout: float = 10.0
    verification_timeout: float = 5.0
    max_attempts: int = 3
    backoff_seconds: float = 1.0

    @classmethod
    def from_env(cls) -> "EsewaSettings":
        merchant_code = os.getenv("ESEWA_MERCHANT", "")
        secret_key = os.getenv("ESEWA_SECRET_KEY", "")
        if not merchant_code or not secret_key:
            raise GatewayConfigurationError("eSewa configuration is missing")
        return cls(
            merchant_code=merchant_code,
            secret_key=secret_key,
            payment_url=os.getenv("ESEWA_PAYMENT_URL", ""),
            verification_url=os.getenv("ESEWA_VERIFICATION_URL", ""),
            frontend_url=os.getenv("FRONTEND_URL", ""),
        )


class EsewaGateway(PaymentGateway):
    def __init__(
        self,
        settings: EsewaSettings,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self._session = session or requests.Session()
        self._sleep = sleep

    # -------------------------------------------------------------------
    # Initiation
    # -------------------------------------------------------------------
    def payment_form(self, order, transaction_uuid: str) -> dict:
        amount = format_amount(order.total_price)
        values = {
            "total_amount": amount,
            "transaction_uuid": transaction_uuid,
            "product_code": self.settings.merchant_code,
        }
        frontend = self.settings.frontend_url.rstrip("/")
        return {
            "amount": amount,
            "failure_url": f"{frontend}/order/esewa-payment-failure?oid={order.id}",
            "product_delivery_charge": "0",
            "product_service_charge": "0",
            "product_code": self.settings.merchant_code,
            "signed_field_names": ",".join(REQUEST_SIGNED_FIELDS),
            "success_url": f"{frontend}/order/esewa-payment-success?oid={order.id}",
            "tax_amount": "0",
            "total_amount": amount,
            "transaction_uuid": transaction_uuid,
            "signature": sign(signable_string(values, REQUEST_SIGNED_FIELDS), self.settings.secret_key),
        }

    def initiate(self, order) -> RedirectDescriptor:
        transaction_uuid = str(uuid4())
        form = self.payment_form(order, transaction_uuid)

        try:
            response = self._session.post(
                self.settings.payment_url,
                params=form,
                timeout=self.settings.initiation_timeout,
            )
        except requests.RequestException as exc:
            logger.error("esewa_initiation_unreachable", order_id=str(order.id), error=type(exc).__name__)
            raise PaymentInitiationFailed("Could not reach the payment provider", order_id=str(order.id)) from None

        if response.status_code != 200 or not response.url:
            logger.error("esewa_initiation_rejected", order_id=str(order.id), status_code=response.status_code)
            raise PaymentInitiationFailed(
                "The payment provider did not accept the payment request",
                order_id=str(order.id),
                status_code=response.status_code,
            )

        logger.info("esewa_payment_initiated", order_id=str(order.id), transaction_uuid=transaction_uuid)
        return RedirectDescriptor(url=response.url, transaction_id=transaction_uuid, form=form)

    # -------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------
    def verify(self, token, order_id, is_duplicate=None) -> VerificationResult:
        payload = decode_token(token)
        transaction_uuid = str(payload["transaction_uuid"])

        if not signature_matches(payload, self.settings.secret_key, self.settings.merchant_code):
            logger.warning("esewa_signature_mismatch", order_id=str(order_id), transaction_uuid=transaction_uuid)
            raise SignatureMismatch(order_id=str(order_id))

        if is_duplicate is not None and is_duplicate(transaction_uuid):
            return VerificationResult(
                success=False,
                external_transaction_id=transaction_uuid,
                message="Transaction already processed",
                duplicate=True,
            )

        status = self.fetch_status(transaction_uuid)
        if status.get("status") != COMPLETE:
            return VerificationResult(
                success=False,
                external_transaction_id=transaction_uuid,
                message="Payment not completed",
            )

        return VerificationResult(
            success=True,
            external_transaction_id=transaction_uuid,
            amount=float(str(payload.get("total_amount", "0")).replace(",", "")),
        )

    def fetch_status(self, transaction_uuid: str) -> dict:
        """Ask the provider for the authoritative status of a transaction."""
        params = {"transaction_uuid": transaction_uuid, "product_code": self.settings.merchant_code}

        for attempt in range(1, self.settings.max_attempts + 1):
            try:
                response = self._session.get(
                    self.settings.verification_url,
                    params=params,
                    timeout=self.settings.verification_timeout,
                )
            except requests.RequestException as exc:
                logger.warning("esewa_status_unreachable", attempt=attempt, error=type(exc).__name__)
            else:
                if response.status_code < 400:
                    try:
                        return response.json()
                    except ValueError:
                        raise PaymentVerificationFailed("Unreadable answer from the payment provider") from None
                if response.status_code < 500:
                    logger.warning("esewa_status_rejected", status_code=response.status_code)
                    raise PaymentVerificationFailed(
                        "The payment provider rejected the verification request",
                        status_code=response.status_code,
                    )
                logger.warning("esewa_status_server_error", attempt=attempt, status_code=response.status_code)

            if attempt < self.settings.max_attempts:
                self._sleep(self.settings.backoff_seconds * 2 ** (attempt - 1))

        raise PaymentVerificationFailed(
            "The payment provider is unavailable",
            attempts=self.settings.max_attempts,
        )
