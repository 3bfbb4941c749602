"""Where the items of a new order come from.

An order is built either from the customer's cart or from a single buy-now
selection. Both are resolved once, up front, into uniform stock lines before
any stock or pricing work runs.
"""

from dataclasses import dataclass

from ordering.cart.snapshot import CartSnapshotReader
from ordering.errors import EmptyCart, InvalidPaymentMethod, InvalidQuantity
from ordering.order.order import MAX_LINE_QUANTITY, PaymentMethod
from ordering.stock.ledger import StockLine


@dataclass(frozen=True)
class CartSource:
    user_id: str


@dataclass(frozen=True)
class BuyNowSource:
    product_id: str
    quantity: int
    variant_id: str | None = None


ItemSource = CartSource | BuyNowSource


@dataclass(frozen=True)
class OrderCreateRequest:
    shipping_address: dict
    payment_method: str
    is_buy_now: bool = False
    product_id: str | None = None
    variant_id: str | None = None
    quantity: int | None = None
    promo_code: str | None = None
    service_charge: float = 0.0
    phone_number: str | None = None

    def item_source(self, user_id) -> ItemSource:
        if self.is_buy_now:
            if not self.product_id:
                raise EmptyCart(user_id)
            return BuyNowSource(
                product_id=str(self.product_id),
                quantity=self.quantity if self.quantity is not None else 1,
                variant_id=None if self.variant_id is None else str(self.variant_id),
            )
        return CartSource(user_id=str(user_id))

    def method(self) -> PaymentMethod:
        try:
            return PaymentMethod(str(self.payment_method).upper())
        except ValueError:
            raise InvalidPaymentMethod(self.payment_method) from None


def _checked_quantity(quantity) -> int:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or not 1 <= quantity <= MAX_LINE_QUANTITY:
        raise InvalidQuantity(quantity, MAX_LINE_QUANTITY)
    return quantity


def resolve_lines(source: ItemSource, carts: CartSnapshotReader) -> list[StockLine]:
    if isinstance(source, BuyNowSource):
        return [
            StockLine(
                product_id=source.product_id,
                variant_id=source.variant_id,
                quantity=_checked_quantity(source.quantity),
            )
        ]

    snapshot = carts.get_cart_with_items(source.user_id)
    if snapshot.is_empty:
        raise EmptyCart(source.user_id)
    return [
        StockLine(product_id=line.product_id, variant_id=line.variant_id, quantity=_checked_quantity(line.quantity))
        for line in snapshot.lines
    ]
