"""Cart Snapshot Reader — a user's cart as the item source of an order."""

from dataclasses import dataclass, field

import structlog
from protean.domain import Domain

from ordering.cart.cart import CartItem

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: str
    variant_id: str | None
    quantity: int


@dataclass(frozen=True)
class CartSnapshot:
    user_id: str
    lines: list[CartLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartSnapshotReader:
    def __init__(self, domain: Domain) -> None:
        self._domain = domain

    @property
    def _repo(self):
        return self._domain.repository_for(CartItem)

    def get_cart_with_items(self, user_id) -> CartSnapshot:
        items = self._repo.for_user(user_id)
        return CartSnapshot(
            user_id=str(user_id),
            lines=[
                CartLine(
                    product_id=str(item.product_id),
                    variant_id=None if item.variant_id is None else str(item.variant_id),
                    quantity=item.quantity,
                )
                for item in items
            ],
        )

    def clear_cart(self, user_id) -> int:
        """Delete every item in the user's cart; joins the caller's unit of work."""
        repo = self._repo
        items = repo.for_user(user_id)
        for item in items:
            repo.remove(item)
        logger.debug("cart_cleared", user_id=str(user_id), items=len(items))
        return len(items)

    def evict_stock_unit(self, product_id, variant_id=None, keep_user=None) -> int:
        """Remove a sold-out stock unit from every cart that references it, except ``keep_user``'s."""
        repo = self._repo
        items = [
            item
            for item in repo.referencing(product_id, variant_id)
            if keep_user is None or str(item.user_id) != str(keep_user)
        ]
        for item in items:
            repo.remove(item)
        if items:
            logger.info(
                "stock_unit_evicted_from_carts",
                product_id=str(product_id),
                variant_id=variant_id,
                carts=len(items),
            )
        return len(items)
