"""Order cancellation, payment abandonment and reservation expiry — commands and handler.

Each handler cancels the order and, when the order still holds committed
stock, gives that stock back in the same unit of work.
"""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import NotFound
from ordering.order.order import Order
from ordering.stock.ledger import StockLedger, StockLine


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    reason = String(max_length=500, default="Cancelled by customer")


@ordering.command(part_of="Order")
class AbandonPayment:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class ExpireReservation:
    order_id = Identifier(required=True)
    expired_at = DateTime()


def _release(order: Order) -> None:
    StockLedger(current_domain).restore([StockLine.from_dict(line) for line in order.stock_lines()])


@ordering.command_handler(part_of=Order)
class CancellationHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if str(order.placed_by) != str(command.user_id):
            raise NotFound("order", command.order_id)

        lines = order.stock_lines()
        if order.cancel(reason=command.reason):
            StockLedger(current_domain).restore([StockLine.from_dict(line) for line in lines])
        repo.add(order)

    @handle(AbandonPayment)
    def abandon_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.abandon_payment():
            _release(order)
        repo.add(order)

    @handle(ExpireReservation)
    def expire_reservation(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.expire_reservation(command.expired_at):
            _release(order)
        repo.add(order)
