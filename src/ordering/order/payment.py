"""Payment reconciliation — commands and handler.

Gateway verification happens before these commands are issued; the handlers
only apply an already verified outcome to the order and its stock.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.snapshot import CartSnapshotReader
from ordering.domain import ordering
from ordering.errors import InsufficientStock
from ordering.order.order import Order, OrderStatus
from ordering.stock.ledger import StockLedger, StockLine

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ConfirmPayment:
    order_id = Identifier(required=True)
    transaction_id = String(required=True, max_length=255)


@ordering.command(part_of="Order")
class RejectPayment:
    order_id = Identifier(required=True)
    transaction_id = String(max_length=255)
    reason = String(max_length=500, default="Payment not completed")


@ordering.command_handler(part_of=Order)
class PaymentReconciliationHandler:
    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.is_paid:
            return "already_paid"

        if order.status != OrderStatus.PENDING.value:
            # Cancelled while the provider was verifying; money is kept, stock is not taken.
            logger.warning(
                "payment_after_cancellation",
                order_id=str(order.id),
                transaction_id=command.transaction_id,
                status=order.status,
            )
            order.record_late_payment(command.transaction_id)
            repo.add(order)
            return "refund_required"

        if not order.stock_committed:
            try:
                StockLedger(current_domain).commit(
                    [StockLine.from_dict(line) for line in order.stock_lines()],
                    buyer=order.placed_by,
                )
            except InsufficientStock as exc:
                logger.warning(
                    "paid_order_out_of_stock",
                    order_id=str(order.id),
                    transaction_id=command.transaction_id,
                    **exc.details,
                )
                order.cancel_unfulfillable_payment(command.transaction_id)
                repo.add(order)
                return "refund_required"

        order.confirm_payment(command.transaction_id)
        repo.add(order)

        if not order.is_buy_now:
            CartSnapshotReader(current_domain).clear_cart(order.placed_by)
        return "confirmed"

    @handle(RejectPayment)
    def reject_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.status != OrderStatus.PENDING.value:
            return "already_settled"

        lines = order.stock_lines()
        if order.reject_payment(transaction_id=command.transaction_id, reason=command.reason):
            StockLedger(current_domain).restore([StockLine.from_dict(line) for line in lines])
        repo.add(order)
        return "rejected"
