"""Pricing & Shipping Calculator.

Pure computation: given fully resolved lines (each carrying the price and
discount fields of its product or variant and its vendor's district), the
customer's district and an optional promo code, produce the order's price
breakdown. Nothing here touches persistence.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from ordering.catalogue.product import DiscountType
from ordering.errors import NotFound
from ordering.pricing.shipping import ShippingTable
from ordering.promotion.promo_code import PromoScope, PromoTerms

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LineInput:
    product_id: str
    vendor_id: str
    vendor_district: str | None
    quantity: int
    base_price: float
    variant_id: str | None = None
    variant_price: float | None = None
    discount: float = 0.0
    discount_type: str | None = None


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    variant_id: str | None
    vendor_id: str
    quantity: int
    unit_price: float

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


@dataclass(frozen=True)
class Quote:
    lines: tuple[PricedLine, ...]
    subtotal: float
    shipping_fee: float
    discount_amount: float
    service_charge: float
    total: float
    applied_promo_code: str | None = None


def unit_price(line: LineInput) -> float:
    """Price of one unit at order time.

    Variants are sold at their own base price. A product's discount is applied
    to its base price; a flat discount larger than the price yields zero.
    """
    if line.variant_id is not None:
        return round(line.variant_price if line.variant_price is not None else line.base_price, 2)

    base = line.base_price
    discount = line.discount or 0.0
    if not discount or not line.discount_type:
        return round(base, 2)

    if line.discount_type == DiscountType.PERCENTAGE.value:
        price = base - base * discount / 100
    else:
        price = base - discount

    if price < 0:
        logger.warning("discount_exceeds_price", product_id=line.product_id, base_price=base, discount=discount)
        price = 0.0
    return round(price, 2)


class PricingCalculator:
    def __init__(self, shipping: ShippingTable | None = None) -> None:
        self.shipping = shipping or ShippingTable()

    def shipping_fee(self, lines: Sequence[LineInput], customer_district: str) -> float:
        districts = []
        for line in lines:
            if not line.vendor_district:
                raise NotFound(
                    "district",
                    line.vendor_id,
                    message=f"Vendor for product {line.product_id} has no valid address",
                )
            districts.append(line.vendor_district)
        return round(self.shipping.total_fee(districts, customer_district), 2)

    def quote(
        self,
        lines: Sequence[LineInput],
        customer_district: str,
        promo: PromoTerms | None = None,
        promo_already_used: bool = False,
        service_charge: float = 0.0,
    ) -> Quote:
        priced = tuple(
            PricedLine(
                product_id=line.product_id,
                variant_id=line.variant_id,
                vendor_id=line.vendor_id,
                quantity=line.quantity,
                unit_price=unit_price(line),
            )
            for line in lines
        )
        subtotal = round(sum(p.unit_price * p.quantity for p in priced), 2)
        shipping_fee = self.shipping_fee(lines, customer_district)

        discount_amount = 0.0
        applied_code = None
        if promo is not None and promo.is_valid and not promo_already_used:
            base = subtotal if promo.applies_to == PromoScope.LINE_TOTAL else shipping_fee
            discount_amount = round(base * promo.discount_percentage / 100, 2)
            applied_code = promo.code
        elif promo is not None:
            logger.info("promo_not_applied", code=promo.code, valid=promo.is_valid, already_used=promo_already_used)

        service_charge = round(service_charge or 0.0, 2)
        total = round(subtotal - discount_amount + shipping_fee + service_charge, 2)

        return Quote(
            lines=priced,
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            discount_amount=discount_amount,
            service_charge=service_charge,
            total=total,
            applied_promo_code=applied_code,
        )
