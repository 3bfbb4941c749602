from protean import current_domain

from manage import SEED_DISTRICTS, seed_catalogue
from ordering.catalogue.product import Product
from ordering.catalogue.vendor import Vendor


class TestSeedCatalogue:
    def test_creates_requested_products_with_stock(self, capsys):
        product_ids = seed_catalogue(products=4, stock=25, domain=current_domain)

        assert len(product_ids) == 4
        for product_id in product_ids:
            product = current_domain.repository_for(Product).get(product_id)
            assert product.stock == 25
            assert product.stock_status == "AVAILABLE"

        printed = capsys.readouterr().out.split()
        assert printed[-4:] == product_ids

    def test_creates_one_vendor_per_district(self):
        seed_catalogue(products=1, domain=current_domain)

        vendors = current_domain.repository_for(Vendor)._dao.query.all().items
        assert sorted(v.district for v in vendors) == sorted(SEED_DISTRICTS)

    def test_products_are_spread_across_vendors(self):
        product_ids = seed_catalogue(products=len(SEED_DISTRICTS), domain=current_domain)

        vendor_ids = {str(current_domain.repository_for(Product).get(pid).vendor_id) for pid in product_ids}
        assert len(vendor_ids) == len(SEED_DISTRICTS)
