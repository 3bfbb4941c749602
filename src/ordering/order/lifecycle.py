"""Order Lifecycle Engine.

Orchestrates order placement, status changes, cancellation and payment
reconciliation. Each state-changing operation issues exactly one command,
and each command is one unit of work. Commands that touch stock run while
this engine holds the stock locks of every product involved; payment
gateway I/O never runs while locks or a unit of work are held.

Callers run inside an active domain context, as the API middleware and the
test fixtures do.
"""

import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace
from datetime import UTC, datetime, timedelta

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError

from ordering.address.address import validate_address
from ordering.cart.snapshot import CartSnapshotReader
from ordering.config import OrderingSettings, ReservationPolicy
from ordering.errors import (
    CannotCancel,
    InvalidPaymentMethod,
    InvalidTransition,
    NotFound,
    PaymentVerificationFailed,
)
from ordering.notification.logging_sink import LoggingNotificationSink
from ordering.notification.port import NotificationSink
from ordering.order.address_change import ChangeShippingAddress
from ordering.order.cancellation import AbandonPayment, CancelOrder, ExpireReservation
from ordering.order.order import Order, OrderLine, OrderStatus, PaymentMethod
from ordering.order.payment import ConfirmPayment, RejectPayment
from ordering.order.placement import PlaceOrder
from ordering.order.sources import OrderCreateRequest, resolve_lines
from ordering.order.status import UpdateOrderStatus
from ordering.promotion.promo_code import PromoLookup
from ordering.stock import get_stock_locks
from ordering.stock.ledger import StockLedger
from payments.gateway import get_gateway
from payments.gateway.port import PaymentGateway, RedirectDescriptor

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PlacementResult:
    order: Order
    redirect: RedirectDescriptor | None = None

    @property
    def redirect_url(self) -> str | None:
        return self.redirect.url if self.redirect else None


@dataclass(frozen=True)
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class PromoCheck:
    code: str
    usable: bool
    reason: str | None = None
    discount_percentage: float | None = None
    applies_to: str | None = None


@dataclass(frozen=True)
class VendorOrderView:
    order: Order
    lines: list[OrderLine]

    @property
    def vendor_total(self) -> float:
        return round(sum(line.unit_price * line.quantity for line in self.lines), 2)


def _page_bounds(page, limit) -> tuple[int, int, int]:
    page = max(1, int(page or 1))
    limit = min(MAX_PAGE_SIZE, max(1, int(limit or DEFAULT_PAGE_SIZE)))
    return page, limit, (page - 1) * limit


class OrderLifecycle:
    def __init__(
        self,
        domain: Domain,
        gateways: Mapping[str, PaymentGateway] | None = None,
        notifier: NotificationSink | None = None,
        settings: OrderingSettings | None = None,
    ) -> None:
        self._domain = domain
        self._gateways = gateways
        self._notifier = notifier or LoggingNotificationSink()
        self._settings = settings or OrderingSettings.from_env()

    # -------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------
    @property
    def _orders(self):
        return self._domain.repository_for(Order)

    def _gateway_for(self, method: PaymentMethod) -> PaymentGateway:
        gateways = self._gateways if self._gateways is not None else {PaymentMethod.ESEWA.value: get_gateway()}
        gateway = gateways.get(method.value)
        if gateway is None:
            raise InvalidPaymentMethod(method.value)
        return gateway

    def _hold_stock_of(self, order_or_lines):
        lines = order_or_lines.stock_lines() if isinstance(order_or_lines, Order) else order_or_lines
        return get_stock_locks().hold(str(line["product_id"]) for line in lines)

    def _notify(self, send, order) -> None:
        try:
            send(order)
        except Exception:
            logger.exception("notification_failed", order_id=str(order.id), status=order.status)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_by_id(self, order_id) -> Order:
        try:
            return self._orders.get(str(order_id))
        except ObjectNotFoundError:
            raise NotFound("order", order_id) from None

    def list_by_user(self, user_id, page=1, limit=DEFAULT_PAGE_SIZE) -> Page:
        page, limit, offset = _page_bounds(page, limit)
        results = self._orders.page_for_user(user_id, offset, limit)
        return Page(items=list(results.items), total=results.total, page=page, limit=limit)

    def list_by_vendor(self, vendor_id, page=1, limit=DEFAULT_PAGE_SIZE) -> Page:
        page, limit, offset = _page_bounds(page, limit)
        results = self._orders.page_for_vendor(vendor_id, offset, limit)
        return Page(items=list(results.items), total=results.total, page=page, limit=limit)

    def track_order(self, user_id, order_id) -> Order:
        """An order as seen by the customer who placed it; anyone else sees nothing."""
        order = self.get_by_id(order_id)
        if str(order.placed_by) != str(user_id):
            raise NotFound("order", order_id)
        return order

    def vendor_order_details(self, vendor_id, order_id) -> VendorOrderView:
        order = self.get_by_id(order_id)
        lines = order.lines_for_vendor(vendor_id)
        if not lines:
            raise NotFound("order", order_id)
        return VendorOrderView(order=order, lines=lines)

    def get_by_transaction_id(self, transaction_id) -> Order:
        order = self._orders.by_transaction_id(str(transaction_id))
        if order is None:
            raise NotFound("order", transaction_id)
        return order

    def get_payment_status(self, order_id) -> dict:
        order = self.get_by_id(order_id)
        return {
            "order_id": str(order.id),
            "status": order.status,
            "payment_status": order.payment_status,
            "payment_method": order.payment_method,
        }

    def check_promo_code(self, code, user_id) -> PromoCheck:
        promo = PromoLookup(self._domain).find_by_code(code)
        if promo is None:
            return PromoCheck(code=code, usable=False, reason="Promo code not found")
        if not promo.is_valid:
            return PromoCheck(code=promo.code, usable=False, reason="Promo code has expired")
        if self._orders.has_consumed_promo(user_id, promo.code):
            return PromoCheck(code=promo.code, usable=False, reason="Promo code already used")
        return PromoCheck(
            code=promo.code,
            usable=True,
            discount_percentage=promo.discount_percentage,
            applies_to=promo.applies_to.value,
        )

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    def create_order(self, user_id, request: OrderCreateRequest) -> PlacementResult:
        method = request.method()
        gateway = self._gateway_for(method) if method.is_online else None
        validate_address(request.shipping_address)

        lines = resolve_lines(request.item_source(user_id), CartSnapshotReader(self._domain))
        StockLedger(self._domain).validate_availability(lines)

        soft = self._settings.reservation_policy == ReservationPolicy.SOFT
        commit_stock = not method.is_online or soft
        reserved_until = None
        if method.is_online and commit_stock:
            reserved_until = datetime.now(UTC) + timedelta(minutes=self._settings.reservation_ttl_minutes)

        command = PlaceOrder(
            placed_by=str(user_id),
            items=json.dumps([asdict(line) for line in lines]),
            shipping_address=json.dumps(request.shipping_address),
            payment_method=method.value,
            is_buy_now=request.is_buy_now,
            promo_code=request.promo_code or None,
            service_charge=request.service_charge or 0.0,
            phone_number=request.phone_number,
            commit_stock=commit_stock,
            reserved_until=reserved_until,
        )

        if commit_stock:
            with self._hold_stock_of([asdict(line) for line in lines]):
                order_id = self._domain.process(command, asynchronous=False)
        else:
            order_id = self._domain.process(command, asynchronous=False)

        order = self.get_by_id(order_id)
        self._notify(self._notifier.notify_order_placed, order)

        if not method.is_online:
            return PlacementResult(order=order)

        # The order is already durable; a failing gateway leaves it PENDING.
        redirect = gateway.initiate(order)
        return PlacementResult(order=order, redirect=redirect)

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def update_order_status(self, order_id, status) -> Order:
        order = self.get_by_id(order_id)
        try:
            target = OrderStatus(str(status).upper())
        except ValueError:
            raise InvalidTransition(order.status, str(status)) from None

        command = UpdateOrderStatus(order_id=str(order.id), status=target.value)
        if target == OrderStatus.CANCELLED:
            with self._hold_stock_of(order):
                changed = self._domain.process(command, asynchronous=False)
        else:
            changed = self._domain.process(command, asynchronous=False)

        order = self.get_by_id(order_id)
        if changed:
            logger.info("order_status_updated", order_id=str(order.id), status=order.status)
            self._notify(self._notifier.notify_status_changed, order)
        return order

    def cancel_order(self, order_id, user_id) -> Order:
        order = self.track_order(user_id, order_id)
        with self._hold_stock_of(order):
            self._domain.process(CancelOrder(order_id=str(order.id), user_id=str(user_id)), asynchronous=False)

        order = self.get_by_id(order_id)
        logger.info("order_cancelled", order_id=str(order.id), user_id=str(user_id))
        self._notify(self._notifier.notify_status_changed, order)
        return order

    def update_shipping_address(self, order_id, user_id, address: dict) -> Order:
        order = self.track_order(user_id, order_id)
        validate_address(address)
        self._domain.process(
            ChangeShippingAddress(order_id=str(order.id), user_id=str(user_id), shipping_address=json.dumps(address)),
            asynchronous=False,
        )
        return self.get_by_id(order_id)

    # -------------------------------------------------------------------
    # Payment reconciliation
    # -------------------------------------------------------------------
    def reconcile_payment(self, token, order_id) -> Order:
        order = self.get_by_id(order_id)
        if order.is_paid:
            logger.info("payment_already_reconciled", order_id=str(order.id))
            return order

        # A cancelled order is still verified: the customer may have paid before the cancel landed.
        method = PaymentMethod(order.payment_method)
        if not method.is_online or order.status not in (OrderStatus.PENDING.value, OrderStatus.CANCELLED.value):
            raise InvalidTransition(order.status, OrderStatus.CONFIRMED.value)

        gateway = self._gateway_for(method)

        def _is_duplicate(transaction_id):
            return self._orders.by_transaction_id(transaction_id) is not None

        result = gateway.verify(token, str(order.id), is_duplicate=_is_duplicate)

        if result.duplicate:
            logger.info("payment_callback_duplicate", order_id=str(order.id), transaction_id=result.external_transaction_id)
            return order

        if result.success and result.amount is not None and abs(result.amount - order.total_price) > 0.01:
            logger.warning("payment_amount_mismatch", order_id=str(order.id), paid=result.amount, due=order.total_price)
            result = replace(result, success=False, message="Paid amount does not match order total")

        if result.success:
            with self._hold_stock_of(order):
                outcome = self._domain.process(
                    ConfirmPayment(order_id=str(order.id), transaction_id=result.external_transaction_id),
                    asynchronous=False,
                )
            order = self.get_by_id(order_id)
            logger.info("payment_reconciled", order_id=str(order.id), outcome=outcome, status=order.status)
            if outcome in ("confirmed", "refund_required"):
                self._notify(self._notifier.notify_status_changed, order)
            return order

        with self._hold_stock_of(order):
            outcome = self._domain.process(
                RejectPayment(
                    order_id=str(order.id),
                    transaction_id=result.external_transaction_id,
                    reason=result.message or "Payment not completed",
                ),
                asynchronous=False,
            )
        order = self.get_by_id(order_id)
        logger.info("payment_rejected", order_id=str(order.id), outcome=outcome, message=result.message)
        if outcome == "rejected":
            self._notify(self._notifier.notify_status_changed, order)
        raise PaymentVerificationFailed(result.message or "Payment not completed", order_id=str(order.id))

    def handle_payment_cancel(self, order_id) -> None:
        order = self.get_by_id(order_id)
        with self._hold_stock_of(order):
            self._domain.process(AbandonPayment(order_id=str(order.id)), asynchronous=False)
        logger.info("payment_abandoned", order_id=str(order.id))
        self._notify(self._notifier.notify_status_changed, self.get_by_id(order_id))

    def release_expired_reservations(self, now: datetime | None = None) -> list[str]:
        """Cancel unpaid orders whose soft stock reservation has run out."""
        now = now or datetime.now(UTC)
        released = []
        for order in self._orders.expired_reservations(now):
            try:
                with self._hold_stock_of(order):
                    self._domain.process(ExpireReservation(order_id=str(order.id), expired_at=now), asynchronous=False)
            except CannotCancel:
                logger.info("reservation_already_settled", order_id=str(order.id))
                continue
            released.append(str(order.id))
            self._notify(self._notifier.notify_status_changed, self.get_by_id(order.id))

        if released:
            logger.info("reservations_expired", count=len(released))
        return released
