"""Product aggregate with its Variant entity — the marketplace's stock units.

A product without variants carries its own stock; a product with variants
carries stock on each variant instead. Either way the inventory-bearing
record is called a *stock unit*. Stock status is never stored: it is derived
from the quantity every time it is read.
"""

from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Float, HasMany, Identifier, Integer, String

from ordering.catalogue.events import StockLevelChanged
from ordering.domain import ordering

LOW_STOCK_THRESHOLD = 5


class StockStatus(Enum):
    AVAILABLE = "AVAILABLE"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class DiscountType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT = "FLAT"


def derive_stock_status(quantity: int) -> StockStatus:
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity < LOW_STOCK_THRESHOLD:
        return StockStatus.LOW_STOCK
    return StockStatus.AVAILABLE


@ordering.entity(part_of="Product")
class Variant:
    sku = String(required=True, max_length=50)
    base_price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)

    @property
    def stock_status(self) -> str:
        return derive_stock_status(self.stock or 0).value


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    vendor_id = Identifier(required=True)
    base_price = Float(required=True, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    discount_type = String(choices=DiscountType)
    stock = Integer(default=0, min_value=0)
    variants = HasMany(Variant)

    @invariant.post
    def variant_skus_must_be_unique(self):
        skus = [v.sku for v in self.variants]
        if len(skus) != len(set(skus)):
            raise ValidationError({"variants": ["Variant SKUs must be unique within a product"]})

    @invariant.post
    def percentage_discount_cannot_exceed_100(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.discount or 0) > 100:
            raise ValidationError({"discount": ["Percentage discount cannot exceed 100"]})

    @classmethod
    def create(cls, name, vendor_id, base_price, stock=0, discount=0.0, discount_type=None):
        return cls(
            name=name,
            vendor_id=vendor_id,
            base_price=base_price,
            stock=stock,
            discount=discount,
            discount_type=discount_type.value if isinstance(discount_type, DiscountType) else discount_type,
        )

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    @property
    def stock_status(self) -> str:
        return derive_stock_status(self.stock or 0).value

    def add_variant(self, sku, base_price, stock=0):
        variant = Variant(sku=sku, base_price=base_price, stock=stock)
        with atomic_change(self):
            self.add_variants(variant)
        return variant

    def find_variant(self, variant_id):
        return next((v for v in self.variants if str(v.id) == str(variant_id)), None)

    def available_quantity(self, variant_id=None) -> int:
        """Quantity on hand for the product itself or one of its variants.

        Raises ``LookupError`` when ``variant_id`` does not belong to this product.
        """
        if variant_id is None:
            return self.stock or 0
        variant = self.find_variant(variant_id)
        if variant is None:
            raise LookupError(variant_id)
        return variant.stock or 0

    def adjust_stock(self, delta: int, variant_id=None) -> int:
        """Apply a signed quantity change to one stock unit and return the new quantity.

        Only the stock ledger calls this, while holding the unit's lock.
        """
        holder = self if variant_id is None else self.find_variant(variant_id)
        if holder is None:
            raise LookupError(variant_id)

        previous = holder.stock or 0
        new_quantity = previous + delta
        if new_quantity < 0:
            raise ValidationError({"stock": [f"Insufficient stock: {previous} available, {-delta} requested"]})

        holder.stock = new_quantity

        self.raise_(
            StockLevelChanged(
                product_id=str(self.id),
                variant_id=None if variant_id is None else str(variant_id),
                previous_quantity=previous,
                new_quantity=new_quantity,
                stock_status=derive_stock_status(new_quantity).value,
            )
        )
        return new_quantity

    def change_price(self, base_price):
        self.base_price = base_price
