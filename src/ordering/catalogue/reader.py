"""Read access to products and the districts of the vendors selling them."""

from dataclasses import dataclass

from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError

from ordering.catalogue.product import Product
from ordering.catalogue.vendor import Vendor
from ordering.errors import NotFound


@dataclass(frozen=True)
class ProductWithDistrict:
    product: Product
    vendor_district: str | None


class ProductReader:
    def __init__(self, domain: Domain) -> None:
        self._domain = domain

    def get_by_id(self, product_id) -> Product:
        try:
            return self._domain.repository_for(Product).get(str(product_id))
        except ObjectNotFoundError:
            raise NotFound("product", product_id) from None

    def get_by_id_with_vendor_district(self, product_id) -> ProductWithDistrict:
        product = self.get_by_id(product_id)
        try:
            vendor = self._domain.repository_for(Vendor).get(str(product.vendor_id))
        except ObjectNotFoundError:
            return ProductWithDistrict(product=product, vendor_district=None)
        district = vendor.district.strip() if vendor.district else None
        return ProductWithDistrict(product=product, vendor_district=district or None)
