"""Configurable fake payment gateway for development and testing.

Signs and verifies exactly like the eSewa adapter but never leaves the
process: initiation returns a local redirect, and the provider's status
endpoint is simulated by ``configure(should_succeed=...)``. Use
``callback_token`` to produce the token the provider would send back.
"""

from uuid import uuid4

from ordering.errors import PaymentInitiationFailed, SignatureMismatch
from payments.gateway.port import PaymentGateway, RedirectDescriptor, VerificationResult
from payments.gateway.signing import decode_token, encode_callback, signature_matches

FAKE_MERCHANT = "EPAYTEST"
FAKE_SECRET = "fake-secret"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.initiation_available: bool = True
        self.calls: list[dict] = []
        self.initiated: dict[str, str] = {}  # order_id -> transaction_uuid
        self.amounts: dict[str, float] = {}

    def configure(self, should_succeed: bool = True, initiation_available: bool = True) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.initiation_available = initiation_available

    def initiate(self, order) -> RedirectDescriptor:
        self.calls.append({"method": "initiate", "order_id": str(order.id), "amount": order.total_price})
        if not self.initiation_available:
            raise PaymentInitiationFailed("Could not reach the payment provider", order_id=str(order.id))

        transaction_uuid = str(uuid4())
        self.initiated[str(order.id)] = transaction_uuid
        self.amounts[str(order.id)] = order.total_price
        return RedirectDescriptor(
            url=f"https://fake-gateway.local/pay/{transaction_uuid}",
            transaction_id=transaction_uuid,
            form={"transaction_uuid": transaction_uuid, "product_code": FAKE_MERCHANT},
        )

    def callback_token(self, order_id, status: str = "COMPLETE", transaction_uuid: str | None = None) -> str:
        """The token the provider would append to the success redirect."""
        order_id = str(order_id)
        return encode_callback(
            transaction_uuid=transaction_uuid or self.initiated.get(order_id) or str(uuid4()),
            total_amount=self.amounts.get(order_id, 0),
            product_code=FAKE_MERCHANT,
            secret=FAKE_SECRET,
            status=status,
        )

    def verify(self, token, order_id, is_duplicate=None) -> VerificationResult:
        self.calls.append({"method": "verify", "order_id": str(order_id)})
        payload = decode_token(token)
        transaction_uuid = str(payload["transaction_uuid"])

        if not signature_matches(payload, FAKE_SECRET, FAKE_MERCHANT):
            raise SignatureMismatch(order_id=str(order_id))
        if is_duplicate is not None and is_duplicate(transaction_uuid):
            return VerificationResult(
                success=False,
                external_transaction_id=transaction_uuid,
                message="Transaction already processed",
                duplicate=True,
            )
        if not self.should_succeed or payload.get("status") != "COMPLETE":
            return VerificationResult(
                success=False,
                external_transaction_id=transaction_uuid,
                message="Payment not completed",
            )
        return VerificationResult(
            success=True,
            external_transaction_id=transaction_uuid,
            amount=float(payload.get("total_amount", 0)),
        )
