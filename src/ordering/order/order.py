"""Order aggregate — one purchase transaction in the marketplace.

State Machine:
    PENDING (awaiting online payment) → CONFIRMED | CANCELLED
    CONFIRMED → SHIPPED | CANCELLED | DELAYED
    DELAYED → SHIPPED | CANCELLED
    SHIPPED → DELIVERED | CANCELLED
    DELIVERED → RETURNED
    RETURNED, CANCELLED (terminal)

Cash-on-delivery orders start CONFIRMED; online orders start PENDING and
leave that state only through payment reconciliation, abandonment, or
reservation expiry, never through a general status update.

Prices are a snapshot taken at placement: line unit prices and the total are
never recomputed from the current catalogue.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import CannotCancel, InvalidTransition
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentReconciled,
)

MAX_LINE_QUANTITY = 1000


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DELAYED = "DELAYED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class PaymentStatus(Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
    ESEWA = "ESEWA"
    KHALTI = "KHALTI"

    @property
    def is_online(self) -> bool:
        return self is not PaymentMethod.CASH_ON_DELIVERY


# Transitions reachable through a general status update
_VALID_TRANSITIONS = {
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.DELAYED},
    OrderStatus.DELAYED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.PENDING: set(),  # Only via payment reconciliation
}

_NOT_CANCELLABLE = {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED}

# Statuses in which an order counts as having used its promo code
PROMO_CONSUMING_STATUSES = (OrderStatus.CONFIRMED.value, OrderStatus.DELIVERED.value)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, copied from the customer's address at placement."""

    province = String(required=True, max_length=100)
    district = String(required=True, max_length=100)
    city = String(required=True, max_length=100)
    street_line = String(required=True, max_length=255)
    landmark = String(max_length=255)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderLine:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    vendor_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1, max_value=MAX_LINE_QUANTITY)
    unit_price = Float(required=True)

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "variant_id": None if self.variant_id is None else str(self.variant_id),
            "vendor_id": str(self.vendor_id),
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    placed_by = Identifier(required=True)
    items = HasMany(OrderLine)
    shipping_address = ValueObject(ShippingAddress)
    phone_number = String(max_length=20)
    subtotal = Float(default=0.0)
    discount_amount = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    service_charge = Float(default=0.0)
    total_price = Float(required=True)
    applied_promo_code = String(max_length=50)
    payment_method = String(choices=PaymentMethod, required=True)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.UNPAID.value)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    external_transaction_id = String(max_length=255)
    is_buy_now = Boolean(default=False)
    stock_committed = Boolean(default=False)
    reserved_until = DateTime()
    cancellation_reason = String(max_length=500)
    vendor_ids = Text()  # ",v1,v2," for containment queries
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def order_must_have_lines(self):
        if not self.items:
            raise ValidationError({"items": ["An order must contain at least one line"]})

    @invariant.post
    def total_must_match_breakdown(self):
        expected = (self.subtotal or 0.0) - (self.discount_amount or 0.0)
        expected += (self.shipping_fee or 0.0) + (self.service_charge or 0.0)
        if abs(expected - (self.total_price or 0.0)) > 0.01:
            raise ValidationError({"total_price": ["Total does not match subtotal, discount, shipping and charges"]})

    @invariant.post
    def paid_order_cannot_await_payment(self):
        if self.payment_status == PaymentStatus.PAID.value and self.status == OrderStatus.PENDING.value:
            raise ValidationError({"payment_status": ["A paid order cannot be awaiting payment"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        placed_by,
        quote,
        shipping_address: dict,
        payment_method: PaymentMethod,
        is_buy_now=False,
        phone_number=None,
        stock_committed=False,
        reserved_until=None,
    ):
        """Build a new order from a price quote.

        ``quote`` carries the priced lines and the totals; it is the only
        source of prices the order will ever hold.
        """
        now = datetime.now(UTC)
        initial = OrderStatus.PENDING if payment_method.is_online else OrderStatus.CONFIRMED
        lines = [
            OrderLine(
                product_id=line.product_id,
                variant_id=line.variant_id,
                vendor_id=line.vendor_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in quote.lines
        ]
        vendors = sorted({str(line.vendor_id) for line in quote.lines})

        order = cls(
            placed_by=placed_by,
            items=lines,
            shipping_address=ShippingAddress(**shipping_address),
            phone_number=phone_number,
            subtotal=quote.subtotal,
            discount_amount=quote.discount_amount,
            shipping_fee=quote.shipping_fee,
            service_charge=quote.service_charge,
            total_price=quote.total,
            applied_promo_code=quote.applied_promo_code,
            payment_method=payment_method.value,
            payment_status=PaymentStatus.UNPAID.value,
            status=initial.value,
            is_buy_now=is_buy_now,
            stock_committed=stock_committed,
            reserved_until=reserved_until,
            vendor_ids="," + ",".join(vendors) + ",",
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                placed_by=str(placed_by),
                items=json.dumps([line.to_dict() for line in order.items]),
                total_price=order.total_price,
                payment_method=order.payment_method,
                status=order.status,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def stock_lines(self) -> list[dict]:
        return [
            {
                "product_id": str(line.product_id),
                "variant_id": None if line.variant_id is None else str(line.variant_id),
                "quantity": line.quantity,
            }
            for line in self.items
        ]

    def lines_for_vendor(self, vendor_id) -> list[OrderLine]:
        return [line for line in self.items if str(line.vendor_id) == str(vendor_id)]

    @property
    def is_cash_on_delivery(self) -> bool:
        return self.payment_method == PaymentMethod.CASH_ON_DELIVERY.value

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def _record_status_change(self, previous, now):
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=self.status,
                payment_status=self.payment_status,
                changed_at=now,
            )
        )

    def _cancel(self, reason, now):
        previous = self.status
        released = bool(self.stock_committed)
        with atomic_change(self):
            self.status = OrderStatus.CANCELLED.value
            self.cancellation_reason = reason
            self.stock_committed = False
            self.reserved_until = None
            self.updated_at = now

        self._record_status_change(previous, now)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                reason=reason,
                stock_released=released,
                cancelled_at=now,
            )
        )
        return released

    # -------------------------------------------------------------------
    # Status updates (vendor/admin)
    # -------------------------------------------------------------------
    def transition_to(self, new_status) -> bool:
        """Apply a status update; returns False when it was a no-op."""
        current = OrderStatus(self.status)
        target = OrderStatus(new_status)

        if target == current:
            return False
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        if target == OrderStatus.CANCELLED:
            self._cancel("Cancelled by vendor", now)
            return True

        with atomic_change(self):
            self.status = target.value
            if target == OrderStatus.DELIVERED and self.is_cash_on_delivery and not self.is_paid:
                self.payment_status = PaymentStatus.PAID.value
            self.updated_at = now

        self._record_status_change(current.value, now)
        return True

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason="Cancelled by customer") -> bool:
        """Cancel on the customer's behalf; returns True when stock must go back."""
        current = OrderStatus(self.status)
        if current in _NOT_CANCELLABLE:
            raise CannotCancel(current.value)
        return self._cancel(reason, datetime.now(UTC))

    def abandon_payment(self) -> bool:
        """The customer walked away from the payment page."""
        if self.status != OrderStatus.PENDING.value:
            raise CannotCancel(self.status, message="Only orders awaiting payment can be abandoned")
        return self._cancel("Payment cancelled by customer", datetime.now(UTC))

    def expire_reservation(self, now=None) -> bool:
        if self.status != OrderStatus.PENDING.value:
            raise CannotCancel(self.status, message="Only orders awaiting payment can expire")
        return self._cancel("Payment window expired", now or datetime.now(UTC))

    # -------------------------------------------------------------------
    # Payment reconciliation
    # -------------------------------------------------------------------
    def confirm_payment(self, transaction_id):
        if self.status != OrderStatus.PENDING.value:
            raise InvalidTransition(self.status, OrderStatus.CONFIRMED.value)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.CONFIRMED.value
            self.payment_status = PaymentStatus.PAID.value
            self.external_transaction_id = transaction_id
            self.stock_committed = True
            self.reserved_until = None
            self.updated_at = now

        self._record_status_change(OrderStatus.PENDING.value, now)
        self.raise_(
            PaymentReconciled(order_id=str(self.id), transaction_id=transaction_id, outcome="confirmed", reconciled_at=now)
        )

    def reject_payment(self, transaction_id=None, reason="Payment failed") -> bool:
        """Payment did not go through; returns True when reserved stock must go back."""
        if self.status != OrderStatus.PENDING.value:
            raise InvalidTransition(self.status, OrderStatus.CANCELLED.value)

        now = datetime.now(UTC)
        released = self._cancel(reason, now)
        self.raise_(
            PaymentReconciled(order_id=str(self.id), transaction_id=transaction_id, outcome="rejected", reconciled_at=now)
        )
        return released

    def cancel_unfulfillable_payment(self, transaction_id):
        """Payment succeeded but the stock is gone: cancel and flag for a refund."""
        if self.status != OrderStatus.PENDING.value:
            raise InvalidTransition(self.status, OrderStatus.CANCELLED.value)

        now = datetime.now(UTC)
        self._cancel("Out of stock after payment; refund required", now)
        with atomic_change(self):
            self.payment_status = PaymentStatus.PAID.value
            self.external_transaction_id = transaction_id
        self.raise_(
            PaymentReconciled(
                order_id=str(self.id),
                transaction_id=transaction_id,
                outcome="refund_required",
                reconciled_at=now,
            )
        )

    def record_late_payment(self, transaction_id):
        """Payment cleared after the order was already cancelled: keep it and flag a refund."""
        if self.status != OrderStatus.CANCELLED.value or self.is_paid:
            raise InvalidTransition(self.status, OrderStatus.CONFIRMED.value)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.payment_status = PaymentStatus.PAID.value
            self.external_transaction_id = transaction_id
            self.cancellation_reason = f"{self.cancellation_reason or 'Cancelled'}; refund required"
            self.updated_at = now
        self.raise_(
            PaymentReconciled(
                order_id=str(self.id),
                transaction_id=transaction_id,
                outcome="refund_required",
                reconciled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Shipping address
    # -------------------------------------------------------------------
    def change_shipping_address(self, address: dict):
        if self.status != OrderStatus.CONFIRMED.value or self.is_paid:
            raise ValidationError(
                {"shipping_address": ["Shipping address can only be changed on confirmed, unpaid orders"]}
            )
        self.shipping_address = ShippingAddress(**address)
        self.updated_at = datetime.now(UTC)
