"""Caller-visible errors raised by the ordering core.

Every error carries a stable machine-readable ``kind``, a human message,
structured ``details`` for rendering an actionable response, and the HTTP
status the API layer maps it to.
"""

from typing import Any


class OrderingError(Exception):
    kind = "ORDERING_ERROR"
    http_status = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class NotFound(OrderingError):
    kind = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, identifier: Any = None, message: str | None = None) -> None:
        super().__init__(
            message or f"{entity.capitalize()} not found",
            entity=entity,
            identifier=None if identifier is None else str(identifier),
        )
        self.entity = entity


class InsufficientStock(OrderingError):
    kind = "INSUFFICIENT_STOCK"
    http_status = 400

    def __init__(self, product_id: Any, variant_id: Any, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock: {available} available, {requested} requested",
            product_id=str(product_id),
            variant_id=None if variant_id is None else str(variant_id),
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class InvalidTransition(OrderingError):
    kind = "INVALID_TRANSITION"
    http_status = 409

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot move order from {current} to {requested}",
            current_status=current,
            requested_status=requested,
        )
        self.current = current
        self.requested = requested


class CannotCancel(OrderingError):
    kind = "CANNOT_CANCEL"
    http_status = 409

    def __init__(self, current: str, message: str | None = None) -> None:
        super().__init__(message or f"Order in status {current} cannot be cancelled", current_status=current)
        self.current = current


class InvalidPaymentMethod(OrderingError):
    kind = "INVALID_PAYMENT_METHOD"
    http_status = 400

    def __init__(self, payment_method: Any) -> None:
        super().__init__(f"Unsupported payment method: {payment_method}", payment_method=str(payment_method))


class PaymentVerificationFailed(OrderingError):
    kind = "PAYMENT_VERIFICATION_FAILED"
    http_status = 400


class SignatureMismatch(OrderingError):
    kind = "SIGNATURE_MISMATCH"
    http_status = 400

    def __init__(self, message: str = "Invalid payment signature", **details: Any) -> None:
        super().__init__(message, **details)


class DuplicateTransaction(OrderingError):
    kind = "DUPLICATE_TRANSACTION"
    http_status = 409

    def __init__(self, transaction_id: str) -> None:
        super().__init__("Transaction already processed", transaction_id=transaction_id)


class PaymentInitiationFailed(OrderingError):
    kind = "PAYMENT_INITIATION_FAILED"
    http_status = 502


class AddressIncomplete(OrderingError):
    kind = "ADDRESS_INCOMPLETE"
    http_status = 400

    def __init__(self, fields: list[str], message: str | None = None) -> None:
        super().__init__(message or f"Shipping address is incomplete: {', '.join(fields)}", fields=fields)
        self.fields = fields


class EmptyCart(OrderingError):
    kind = "EMPTY_CART"
    http_status = 400

    def __init__(self, user_id: Any = None) -> None:
        super().__init__("Cart is empty", user_id=None if user_id is None else str(user_id))


class InvalidQuantity(OrderingError):
    kind = "INVALID_QUANTITY"
    http_status = 400

    def __init__(self, quantity: Any, maximum: int) -> None:
        super().__init__(f"Quantity must be between 1 and {maximum}", quantity=quantity, maximum=maximum)


class VariantRequired(OrderingError):
    kind = "VARIANT_REQUIRED"
    http_status = 400

    def __init__(self, product_id: Any) -> None:
        super().__init__("Product requires a variant but none was selected", product_id=str(product_id))


class StockConflict(OrderingError):
    kind = "STOCK_CONFLICT"
    http_status = 409

    def __init__(self, keys: list[str], attempts: int) -> None:
        super().__init__("Stock is busy, please retry", stock_units=keys, attempts=attempts)
