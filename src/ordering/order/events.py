"""Domain events for the Order aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order from their cart or through buy-now."""

    __version__ = 1

    order_id = Identifier(required=True)
    placed_by = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line dicts
    total_price = Float(required=True)
    payment_method = String(required=True)
    status = String(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """An order moved from one status to another."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    payment_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """An order was cancelled; stock_released tells whether stock went back."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    stock_released = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentReconciled:
    """The outcome of an external payment was applied to an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String()
    outcome = String(required=True)  # "confirmed", "rejected", "refund_required"
    reconciled_at = DateTime(required=True)
