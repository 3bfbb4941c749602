"""Order status updates by vendors and admins — command and handler.

A status update to CANCELLED gives back stock the order still holds, in the
same unit of work; the caller holds the stock locks of the order's products.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus
from ordering.stock.ledger import StockLedger, StockLine


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        held_stock = bool(order.stock_committed)

        changed = order.transition_to(command.status)
        if not changed:
            return False

        if command.status == OrderStatus.CANCELLED.value and held_stock:
            StockLedger(current_domain).restore([StockLine.from_dict(line) for line in order.stock_lines()])
        repo.add(order)
        return True
