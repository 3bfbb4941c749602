"""Order placement — command and handler.

The handler is one unit of work: the customer's address, the priced order,
the stock deduction and the cart clear are committed together or not at all.
It expects the stock locks of every product in the order to be held by the
caller whenever stock is committed.
"""

import json

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.address.address import AddressBook
from ordering.cart.snapshot import CartSnapshotReader
from ordering.catalogue.reader import ProductReader
from ordering.domain import ordering
from ordering.errors import NotFound, VariantRequired
from ordering.order.order import Order, PaymentMethod
from ordering.pricing.calculator import LineInput, PricingCalculator
from ordering.promotion.promo_code import PromoLookup
from ordering.stock.ledger import StockLedger, StockLine

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    placed_by = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, variant_id, quantity}
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True, max_length=50)
    is_buy_now = Boolean(default=False)
    promo_code = String(max_length=50)
    service_charge = Float(default=0.0)
    phone_number = String(max_length=20)
    commit_stock = Boolean(default=False)
    reserved_until = DateTime()


def price_inputs(lines: list[StockLine]) -> list[LineInput]:
    """Join each stock line with its current product, variant and vendor district."""
    reader = ProductReader(current_domain)
    inputs = []
    for line in lines:
        found = reader.get_by_id_with_vendor_district(line.product_id)
        product = found.product

        variant = None
        if line.variant_id is not None:
            variant = product.find_variant(line.variant_id)
            if variant is None:
                raise NotFound("variant", line.variant_id)
        elif product.has_variants:
            raise VariantRequired(product.id)

        inputs.append(
            LineInput(
                product_id=str(product.id),
                vendor_id=str(product.vendor_id),
                vendor_district=found.vendor_district,
                quantity=line.quantity,
                base_price=product.base_price,
                variant_id=None if variant is None else str(variant.id),
                variant_price=None if variant is None else variant.base_price,
                discount=product.discount or 0.0,
                discount_type=product.discount_type,
            )
        )
    return inputs


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        lines = [StockLine.from_dict(item) for item in json.loads(command.items)]
        method = PaymentMethod(command.payment_method)

        address = AddressBook(current_domain).upsert(command.placed_by, json.loads(command.shipping_address))

        repo = current_domain.repository_for(Order)
        promo = PromoLookup(current_domain).find_by_code(command.promo_code) if command.promo_code else None
        promo_used = promo is not None and repo.has_consumed_promo(command.placed_by, promo.code)
        if command.promo_code and promo is None:
            logger.info("promo_code_unknown", code=command.promo_code)

        quote = PricingCalculator().quote(
            price_inputs(lines),
            customer_district=address.district,
            promo=promo,
            promo_already_used=promo_used,
            service_charge=command.service_charge or 0.0,
        )

        if command.commit_stock:
            StockLedger(current_domain).commit(lines, buyer=command.placed_by)

        order = Order.place(
            placed_by=command.placed_by,
            quote=quote,
            shipping_address=address.to_dict(),
            payment_method=method,
            is_buy_now=bool(command.is_buy_now),
            phone_number=command.phone_number,
            stock_committed=bool(command.commit_stock),
            reserved_until=command.reserved_until,
        )
        repo.add(order)

        if not method.is_online and not command.is_buy_now:
            CartSnapshotReader(current_domain).clear_cart(command.placed_by)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            placed_by=str(command.placed_by),
            total_price=order.total_price,
            payment_method=order.payment_method,
            stock_committed=order.stock_committed,
        )
        return str(order.id)
