"""FastAPI routes for the Ordering domain — orders, payments and promo codes.

Endpoints are plain functions: the lifecycle blocks on stock locks and on the
payment provider, so FastAPI runs them in its threadpool instead of on the
event loop.
"""

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    CancelOrderRequest,
    CreateOrderRequest,
    OrderPageResponse,
    OrderResponse,
    PaymentCallbackRequest,
    PaymentStatusResponse,
    PlacementResponse,
    PromoCheckResponse,
    ShippingAddressChangeRequest,
    StatusResponse,
    UpdateStatusRequest,
)
from ordering.errors import OrderingError
from ordering.order.lifecycle import OrderLifecycle
from ordering.order.sources import OrderCreateRequest


async def get_lifecycle() -> OrderLifecycle:
    return OrderLifecycle(current_domain)


def register_ordering_error_handlers(app: FastAPI) -> None:
    """Render ordering errors as ``{"error": {kind, message, details}}`` with their own status."""

    @app.exception_handler(OrderingError)
    async def _ordering_error(request: Request, exc: OrderingError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})


def _page(result) -> OrderPageResponse:
    return OrderPageResponse(
        items=[OrderResponse.from_order(order) for order in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=PlacementResponse)
def create_order(body: CreateOrderRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    request = OrderCreateRequest(
        shipping_address=body.shipping_address.model_dump(),
        payment_method=body.payment_method,
        is_buy_now=body.is_buy_now,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        promo_code=body.promo_code,
        service_charge=body.service_charge,
        phone_number=body.phone_number,
    )
    result = lifecycle.create_order(body.user_id, request)
    return PlacementResponse(order=OrderResponse.from_order(result.order), redirect_url=result.redirect_url)


@order_router.get("", response_model=OrderPageResponse)
def list_orders(user_id: str, page: int = 1, limit: int = 10, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return _page(lifecycle.list_by_user(user_id, page=page, limit=limit))


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return OrderResponse.from_order(lifecycle.get_by_id(order_id))


@order_router.get("/{order_id}/track", response_model=OrderResponse)
def track_order(order_id: str, user_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return OrderResponse.from_order(lifecycle.track_order(user_id, order_id))


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(order_id: str, body: CancelOrderRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return OrderResponse.from_order(lifecycle.cancel_order(order_id, body.user_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
def update_status(order_id: str, body: UpdateStatusRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return OrderResponse.from_order(lifecycle.update_order_status(order_id, body.status))


@order_router.put("/{order_id}/shipping-address", response_model=OrderResponse)
def change_shipping_address(
    order_id: str,
    body: ShippingAddressChangeRequest,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    order = lifecycle.update_shipping_address(order_id, body.user_id, body.shipping_address.model_dump())
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/payment/success", response_model=OrderResponse)
def payment_success(
    order_id: str,
    body: PaymentCallbackRequest,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    return OrderResponse.from_order(lifecycle.reconcile_payment(body.data, order_id))


@order_router.post("/{order_id}/payment/cancel", response_model=StatusResponse)
def payment_cancel(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    lifecycle.handle_payment_cancel(order_id)
    return StatusResponse(status="cancelled")


@order_router.get("/{order_id}/payment", response_model=PaymentStatusResponse)
def payment_status(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return PaymentStatusResponse(**lifecycle.get_payment_status(order_id))


# ---------------------------------------------------------------------------
# Vendor Router
# ---------------------------------------------------------------------------
vendor_router = APIRouter(prefix="/vendors", tags=["vendors"])


@vendor_router.get("/{vendor_id}/orders", response_model=OrderPageResponse)
def vendor_orders(
    vendor_id: str,
    page: int = 1,
    limit: int = 10,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    return _page(lifecycle.list_by_vendor(vendor_id, page=page, limit=limit))


# ---------------------------------------------------------------------------
# Promo Code Router
# ---------------------------------------------------------------------------
promo_router = APIRouter(prefix="/promo-codes", tags=["promo-codes"])


@promo_router.get("/{code}/check", response_model=PromoCheckResponse)
def check_promo_code(code: str, user_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    check = lifecycle.check_promo_code(code, user_id)
    return PromoCheckResponse(
        code=check.code,
        usable=check.usable,
        reason=check.reason,
        discount_percentage=check.discount_percentage,
        applies_to=check.applies_to,
    )
