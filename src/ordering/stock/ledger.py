"""Stock Ledger — the only code path that changes stock quantities.

``validate_availability`` may be called at any time as a fast pre-check.
``commit`` and ``restore`` must run while the calling thread holds the stock
locks of every product involved; ``commit`` repeats the availability check
under those locks before it touches any quantity, so it is the authoritative
check. All writes join the caller's unit of work.
"""

from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError

from ordering.cart.snapshot import CartSnapshotReader
from ordering.catalogue.events import StockDepleted
from ordering.catalogue.product import Product
from ordering.errors import InsufficientStock, NotFound, VariantRequired
from ordering.stock import get_stock_locks
from ordering.stock.locks import StockLocks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: str
    quantity: int
    variant_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "StockLine":
        variant_id = data.get("variant_id")
        return cls(
            product_id=str(data["product_id"]),
            quantity=int(data["quantity"]),
            variant_id=None if variant_id is None else str(variant_id),
        )


def _totals(lines: Iterable[StockLine]) -> "OrderedDict[tuple[str, str | None], int]":
    totals: OrderedDict[tuple[str, str | None], int] = OrderedDict()
    for line in lines:
        key = (str(line.product_id), None if line.variant_id is None else str(line.variant_id))
        totals[key] = totals.get(key, 0) + line.quantity
    return totals


class StockLedger:
    def __init__(self, domain: Domain, locks: StockLocks | None = None) -> None:
        self._domain = domain
        self._locks = locks or get_stock_locks()
        self._carts = CartSnapshotReader(domain)

    @property
    def _repo(self):
        return self._domain.repository_for(Product)

    def _load(self, product_ids: Iterable[str]) -> dict[str, Product]:
        products = {}
        for product_id in sorted(set(product_ids)):
            try:
                products[product_id] = self._repo.get(product_id)
            except ObjectNotFoundError:
                raise NotFound("product", product_id) from None
        return products

    def _check(self, products: dict[str, Product], totals) -> None:
        for (product_id, variant_id), requested in totals.items():
            product = products[product_id]
            if variant_id is None and product.has_variants:
                raise VariantRequired(product_id)
            try:
                available = product.available_quantity(variant_id)
            except LookupError:
                raise NotFound("variant", variant_id) from None
            if available < requested:
                raise InsufficientStock(product_id, variant_id, available=available, requested=requested)

    def _assert_locked(self, product_ids: Iterable[str]) -> None:
        missing = [pid for pid in product_ids if not self._locks.is_held(pid)]
        if missing:
            raise RuntimeError(f"Stock locks not held for products: {', '.join(sorted(missing))}")

    def validate_availability(self, lines: Iterable[StockLine]) -> None:
        totals = _totals(lines)
        products = self._load(pid for pid, _ in totals)
        self._check(products, totals)

    def commit(self, lines: Iterable[StockLine], buyer=None) -> None:
        """Deduct every line, or nothing at all when any line is short.

        A unit that sells out is dropped from every cart except the buyer's.
        """
        totals = _totals(lines)
        product_ids = {pid for pid, _ in totals}
        self._assert_locked(product_ids)

        products = self._load(product_ids)
        self._check(products, totals)

        depleted = []
        for (product_id, variant_id), quantity in totals.items():
            product = products[product_id]
            remaining = product.adjust_stock(-quantity, variant_id)
            if remaining == 0:
                product.raise_(StockDepleted(product_id=product_id, variant_id=variant_id))
                depleted.append((product_id, variant_id))

        for product in products.values():
            self._repo.add(product)

        for product_id, variant_id in depleted:
            self._carts.evict_stock_unit(product_id, variant_id, keep_user=buyer)

        logger.info("stock_committed", units=len(totals), depleted=len(depleted))

    def restore(self, lines: Iterable[StockLine]) -> None:
        """Give back exactly the quantities a previous commit took."""
        totals = _totals(lines)
        product_ids = {pid for pid, _ in totals}
        self._assert_locked(product_ids)

        products = self._load(product_ids)
        for (product_id, variant_id), quantity in totals.items():
            try:
                products[product_id].adjust_stock(quantity, variant_id)
            except LookupError:
                raise NotFound("variant", variant_id) from None

        for product in products.values():
            self._repo.add(product)

        logger.info("stock_restored", units=len(totals))
