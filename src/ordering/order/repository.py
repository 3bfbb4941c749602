"""Query methods for orders."""

from datetime import datetime

from ordering.domain import ordering
from ordering.order.order import PROMO_CONSUMING_STATUSES, Order, OrderStatus


@ordering.repository(part_of=Order)
class OrderRepository:
    def by_transaction_id(self, transaction_id: str) -> Order | None:
        return self._dao.query.filter(external_transaction_id=transaction_id).all().first

    def page_for_user(self, user_id, offset: int, limit: int):
        return (
            self._dao.query.filter(placed_by=str(user_id))
            .order_by("-created_at")
            .offset(offset)
            .limit(limit)
            .all()
        )

    def page_for_vendor(self, vendor_id, offset: int, limit: int):
        return (
            self._dao.query.filter(vendor_ids__contains=f",{vendor_id},")
            .order_by("-created_at")
            .offset(offset)
            .limit(limit)
            .all()
        )

    def has_consumed_promo(self, user_id, code: str) -> bool:
        """True when the user already has an order that used ``code`` and got confirmed or delivered."""
        results = self._dao.query.filter(
            placed_by=str(user_id),
            applied_promo_code=code,
            status__in=list(PROMO_CONSUMING_STATUSES),
        ).all()
        return results.total > 0

    def expired_reservations(self, now: datetime) -> list[Order]:
        return self._dao.query.filter(
            status=OrderStatus.PENDING.value,
            stock_committed=True,
            reserved_until__lte=now,
        ).all().items
