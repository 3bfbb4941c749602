"""Shared BDD fixtures and step definitions for ordering."""

import pytest
from ordering.cart.cart import CartItem
from ordering.errors import OrderingError
from ordering.order.sources import OrderCreateRequest
from protean import current_domain
from pytest_bdd import given, parsers, then, when

CUSTOMER = "customer-bdd-001"

DISTRICT_ADDRESSES = {
    "Kathmandu": {"province": "Bagmati", "city": "Kathmandu", "street_line": "Thamel Marg 12"},
    "Kaski": {"province": "Gandaki", "city": "Pokhara", "street_line": "Lakeside Road 4"},
}


def address_in(district):
    return {"district": district, **DISTRICT_ADDRESSES[district]}


@pytest.fixture()
def outcome():
    """Holds the last order or error produced by a When step."""
    return {}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a vendor in "{district}"'), target_fixture="vendor_id")
def _(make_vendor, district):
    return make_vendor(district=district)


@given(
    parsers.cfparse("a product priced {price:d} with {discount:d} percent off and {stock:d} in stock"),
    target_fixture="product",
)
def _(make_product, vendor_id, price, discount, stock):
    return make_product(
        vendor_id=vendor_id,
        base_price=float(price),
        stock=stock,
        discount=float(discount),
        discount_type="PERCENTAGE",
    )


@given(parsers.cfparse("the customer has {quantity:d} of the product in their cart"))
def _(add_to_cart, product, quantity):
    add_to_cart(CUSTOMER, product.id, quantity=quantity)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the customer places a "{method}" order from the cart shipping to "{district}"'))
def _(lifecycle, outcome, method, district):
    request = OrderCreateRequest(shipping_address=address_in(district), payment_method=method)
    try:
        outcome["order"] = lifecycle.create_order(CUSTOMER, request).order
    except OrderingError as exc:
        outcome["error"] = exc


@when(parsers.cfparse('the customer buys {quantity:d} of the product now with "{method}"'))
def _(lifecycle, outcome, product, quantity, method):
    request = OrderCreateRequest(
        shipping_address=address_in("Kathmandu"),
        payment_method=method,
        is_buy_now=True,
        product_id=str(product.id),
        quantity=quantity,
    )
    try:
        outcome["order"] = lifecycle.create_order(CUSTOMER, request).order
    except OrderingError as exc:
        outcome["error"] = exc


@when("the payment provider confirms the payment")
def _(lifecycle, fake_gateway, outcome):
    order = outcome["order"]
    outcome["order"] = lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)


@when("the customer cancels the order")
def _(lifecycle, outcome):
    outcome["order"] = lifecycle.cancel_order(outcome["order"].id, CUSTOMER)


@when(parsers.cfparse('the vendor marks the order "{status}"'))
def _(lifecycle, outcome, status):
    try:
        outcome["order"] = lifecycle.update_order_status(outcome["order"].id, status)
    except OrderingError as exc:
        outcome["error"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(lifecycle, outcome, status):
    assert lifecycle.get_by_id(outcome["order"].id).status == status


@then("the order is paid")
def _(lifecycle, outcome):
    assert lifecycle.get_by_id(outcome["order"].id).is_paid


@then(parsers.cfparse("the order total is {total:d}"))
def _(outcome, total):
    assert outcome["order"].total_price == float(total)


@then(parsers.cfparse("{quantity:d} units of the product remain"))
def _(stock_of, product, quantity):
    assert stock_of(product.id) == quantity


@then("the customer's cart is empty")
def _():
    assert current_domain.repository_for(CartItem).for_user(CUSTOMER) == []


@then(parsers.cfparse('the order is refused with "{kind}"'))
def _(outcome, kind):
    assert outcome["error"].kind == kind
