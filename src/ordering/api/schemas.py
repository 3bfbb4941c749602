"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and aggregates.
"""

from pydantic import BaseModel, Field

from ordering.order.order import MAX_LINE_QUANTITY


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    province: str
    district: str
    city: str
    street_line: str
    landmark: str | None = None


class OrderLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    vendor_id: str
    quantity: int
    unit_price: float


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    user_id: str
    shipping_address: AddressSchema
    payment_method: str
    is_buy_now: bool = False
    product_id: str | None = None
    variant_id: str | None = None
    quantity: int | None = Field(default=None, ge=1, le=MAX_LINE_QUANTITY)
    promo_code: str | None = Field(default=None, max_length=50)
    service_charge: float = Field(default=0.0, ge=0)
    phone_number: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "shipping_address": {
                        "province": "Bagmati",
                        "district": "Kathmandu",
                        "city": "Kathmandu",
                        "street_line": "Thamel Marg 12",
                    },
                    "payment_method": "CASH_ON_DELIVERY",
                    "is_buy_now": True,
                    "product_id": "prod-001",
                    "quantity": 2,
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    user_id: str


class UpdateStatusRequest(BaseModel):
    status: str


class ShippingAddressChangeRequest(BaseModel):
    user_id: str
    shipping_address: AddressSchema


class PaymentCallbackRequest(BaseModel):
    data: str  # base64 token appended by the provider to the success redirect


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    order_id: str
    placed_by: str
    status: str
    payment_status: str
    payment_method: str
    subtotal: float
    discount_amount: float
    shipping_fee: float
    service_charge: float
    total_price: float
    applied_promo_code: str | None = None
    external_transaction_id: str | None = None
    shipping_address: AddressSchema
    items: list[OrderLineSchema]

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        address = order.shipping_address
        return cls(
            order_id=str(order.id),
            placed_by=str(order.placed_by),
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            subtotal=order.subtotal,
            discount_amount=order.discount_amount,
            shipping_fee=order.shipping_fee,
            service_charge=order.service_charge,
            total_price=order.total_price,
            applied_promo_code=order.applied_promo_code,
            external_transaction_id=order.external_transaction_id,
            shipping_address=AddressSchema(
                province=address.province,
                district=address.district,
                city=address.city,
                street_line=address.street_line,
                landmark=address.landmark,
            ),
            items=[OrderLineSchema(**line.to_dict()) for line in order.items],
        )


class PlacementResponse(BaseModel):
    order: OrderResponse
    redirect_url: str | None = None


class OrderPageResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    limit: int


class PaymentStatusResponse(BaseModel):
    order_id: str
    status: str
    payment_status: str
    payment_method: str


class PromoCheckResponse(BaseModel):
    code: str
    usable: bool
    reason: str | None = None
    discount_percentage: float | None = None
    applies_to: str | None = None


class StatusResponse(BaseModel):
    status: str = "ok"
