import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

KATHMANDU_ADDRESS = {
    "province": "Bagmati",
    "district": "Kathmandu",
    "city": "Kathmandu",
    "street_line": "Thamel Marg 12",
    "landmark": "Near Garden of Dreams",
}

POKHARA_ADDRESS = {
    "province": "Gandaki",
    "district": "Kaski",
    "city": "Pokhara",
    "street_line": "Lakeside Road 4",
}


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture()
def kathmandu_address():
    return dict(KATHMANDU_ADDRESS)


@pytest.fixture()
def pokhara_address():
    return dict(POKHARA_ADDRESS)


@pytest.fixture()
def make_vendor():
    from ordering.catalogue.vendor import Vendor

    def _make(district="Kathmandu", name="Himalayan Crafts"):
        vendor = Vendor(name=name, district=district)
        current_domain.repository_for(Vendor).add(vendor)
        return str(vendor.id)

    return _make


@pytest.fixture()
def make_product(make_vendor):
    from ordering.catalogue.product import Product

    def _make(vendor_id=None, base_price=1000.0, stock=10, discount=0.0, discount_type=None, variants=None):
        product = Product.create(
            name="Pashmina Shawl",
            vendor_id=vendor_id or make_vendor(),
            base_price=base_price,
            stock=0 if variants else stock,
            discount=discount,
            discount_type=discount_type,
        )
        for sku, price, variant_stock in variants or []:
            product.add_variant(sku=sku, base_price=price, stock=variant_stock)
        current_domain.repository_for(Product).add(product)
        return current_domain.repository_for(Product).get(product.id)

    return _make


@pytest.fixture()
def add_to_cart():
    from ordering.cart.cart import CartItem

    def _add(user_id, product_id, quantity=1, variant_id=None):
        item = CartItem.create(user_id=user_id, product_id=str(product_id), quantity=quantity, variant_id=variant_id)
        current_domain.repository_for(CartItem).add(item)
        return item

    return _add


@pytest.fixture()
def stock_of():
    from ordering.catalogue.product import Product

    def _stock(product_id, variant_id=None):
        return current_domain.repository_for(Product).get(str(product_id)).available_quantity(variant_id)

    return _stock


@pytest.fixture()
def fake_gateway():
    from payments.gateway import set_gateway
    from payments.gateway.fake_adapter import FakeGateway

    gateway = FakeGateway()
    set_gateway(gateway)
    return gateway


@pytest.fixture()
def notifier():
    from ordering.notification.fake_sink import FakeNotificationSink

    return FakeNotificationSink()


@pytest.fixture()
def lifecycle(fake_gateway, notifier):
    from ordering.config import OrderingSettings
    from ordering.order.lifecycle import OrderLifecycle

    return OrderLifecycle(current_domain, notifier=notifier, settings=OrderingSettings())


@pytest.fixture()
def soft_lifecycle(fake_gateway, notifier):
    from ordering.config import OrderingSettings, ReservationPolicy
    from ordering.order.lifecycle import OrderLifecycle

    settings = OrderingSettings(reservation_policy=ReservationPolicy.SOFT, reservation_ttl_minutes=15)
    return OrderLifecycle(current_domain, notifier=notifier, settings=settings)


@pytest.fixture()
def cod_request(kathmandu_address):
    from ordering.order.sources import OrderCreateRequest

    def _request(**overrides):
        values = {"shipping_address": kathmandu_address, "payment_method": "CASH_ON_DELIVERY"}
        values.update(overrides)
        return OrderCreateRequest(**values)

    return _request


@pytest.fixture()
def online_request(kathmandu_address):
    from ordering.order.sources import OrderCreateRequest

    def _request(**overrides):
        values = {"shipping_address": kathmandu_address, "payment_method": "ESEWA"}
        values.update(overrides)
        return OrderCreateRequest(**values)

    return _request
