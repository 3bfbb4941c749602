"""Cart items — one row per product/variant a customer has put in their cart.

Each row is its own small aggregate so that a cart can be read, cleared, or
purged of a sold-out stock unit with a single filter query.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer

from ordering.domain import ordering


@ordering.aggregate
class CartItem:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()

    @classmethod
    def create(cls, user_id, product_id, quantity, variant_id=None):
        return cls(
            user_id=user_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            added_at=datetime.now(UTC),
        )


@ordering.repository(part_of=CartItem)
class CartItemRepository:
    def for_user(self, user_id) -> list[CartItem]:
        return self._dao.query.filter(user_id=str(user_id)).order_by("added_at").all().items

    def referencing(self, product_id, variant_id=None) -> list[CartItem]:
        if variant_id is None:
            items = self._dao.query.filter(product_id=str(product_id)).all().items
            return [item for item in items if item.variant_id is None]
        return self._dao.query.filter(product_id=str(product_id), variant_id=str(variant_id)).all().items

    def remove(self, item: CartItem) -> None:
        self._dao.delete(item)
