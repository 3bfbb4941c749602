"""Application tests for online payment reconciliation, abandonment and reservation expiry."""

from datetime import timedelta

import pytest
from ordering.cart.cart import CartItem
from ordering.errors import CannotCancel, InvalidTransition, PaymentVerificationFailed, SignatureMismatch
from ordering.order.order import OrderStatus, PaymentStatus
from payments.gateway.fake_adapter import FAKE_MERCHANT, FAKE_SECRET
from payments.gateway.signing import encode_callback
from protean import current_domain

USER = "user-001"


def _cart_of(user_id):
    return current_domain.repository_for(CartItem).for_user(user_id)


@pytest.fixture()
def pending_order(lifecycle, make_product, add_to_cart, online_request):
    product = make_product(stock=4)
    add_to_cart(USER, product.id, quantity=2)
    order = lifecycle.create_order(USER, online_request()).order
    return order, product


class TestSuccessfulPayment:
    def test_payment_confirms_and_commits_stock(self, lifecycle, fake_gateway, pending_order, stock_of, notifier):
        order, product = pending_order
        transaction_id = fake_gateway.initiated[str(order.id)]

        confirmed = lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        assert confirmed.status == OrderStatus.CONFIRMED.value
        assert confirmed.payment_status == PaymentStatus.PAID.value
        assert confirmed.external_transaction_id == transaction_id
        assert confirmed.stock_committed is True
        assert stock_of(product.id) == 2
        assert _cart_of(USER) == []
        assert notifier.of_kind("status_changed")[-1]["status"] == "CONFIRMED"

    def test_repeated_callback_is_a_no_op(self, lifecycle, fake_gateway, pending_order, stock_of):
        order, product = pending_order
        token = fake_gateway.callback_token(order.id)
        lifecycle.reconcile_payment(token, order.id)

        again = lifecycle.reconcile_payment(token, order.id)

        assert again.status == OrderStatus.CONFIRMED.value
        assert stock_of(product.id) == 2

    def test_transaction_is_findable(self, lifecycle, fake_gateway, pending_order):
        order, _ = pending_order
        lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)
        transaction_id = fake_gateway.initiated[str(order.id)]
        assert str(lifecycle.get_by_transaction_id(transaction_id).id) == str(order.id)

    def test_transaction_reused_for_another_order_is_ignored(
        self, lifecycle, fake_gateway, pending_order, make_product, online_request
    ):
        order, _ = pending_order
        lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)
        used = fake_gateway.initiated[str(order.id)]

        other = lifecycle.create_order(
            USER, online_request(is_buy_now=True, product_id=str(make_product().id), quantity=1)
        ).order
        token = fake_gateway.callback_token(other.id, transaction_uuid=used)

        result = lifecycle.reconcile_payment(token, other.id)

        assert result.status == OrderStatus.PENDING.value
        assert result.payment_status == PaymentStatus.UNPAID.value

    def test_soft_reservation_is_not_deducted_twice(
        self, soft_lifecycle, fake_gateway, make_product, add_to_cart, stock_of, online_request
    ):
        product = make_product(stock=4)
        add_to_cart(USER, product.id, quantity=2)
        order = soft_lifecycle.create_order(USER, online_request()).order

        soft_lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        assert stock_of(product.id) == 2
        assert soft_lifecycle.get_by_id(order.id).reserved_until is None


class TestFailedPayment:
    def test_failed_payment_cancels_order(self, lifecycle, fake_gateway, pending_order, stock_of):
        order, product = pending_order
        fake_gateway.configure(should_succeed=False)

        with pytest.raises(PaymentVerificationFailed):
            lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        cancelled = lifecycle.get_by_id(order.id)
        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.payment_status == PaymentStatus.UNPAID.value
        assert stock_of(product.id) == 4
        assert len(_cart_of(USER)) == 1

    def test_failed_payment_releases_soft_reservation(
        self, soft_lifecycle, fake_gateway, make_product, add_to_cart, stock_of, online_request
    ):
        product = make_product(stock=4)
        add_to_cart(USER, product.id, quantity=2)
        order = soft_lifecycle.create_order(USER, online_request()).order
        fake_gateway.configure(should_succeed=False)

        with pytest.raises(PaymentVerificationFailed):
            soft_lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        assert stock_of(product.id) == 4

    def test_tampered_callback_changes_nothing(self, lifecycle, pending_order, stock_of):
        order, product = pending_order
        forged = encode_callback("txn-forged", order.total_price, FAKE_MERCHANT, "guessed-secret")

        with pytest.raises(SignatureMismatch):
            lifecycle.reconcile_payment(forged, order.id)

        assert lifecycle.get_by_id(order.id).status == OrderStatus.PENDING.value
        assert stock_of(product.id) == 4

    def test_underpaid_callback_is_rejected(self, lifecycle, pending_order):
        order, _ = pending_order
        token = encode_callback("txn-short", 1, FAKE_MERCHANT, FAKE_SECRET)

        with pytest.raises(PaymentVerificationFailed):
            lifecycle.reconcile_payment(token, order.id)

        assert lifecycle.get_by_id(order.id).status == OrderStatus.CANCELLED.value

    def test_failed_callback_after_cancel_changes_nothing(self, lifecycle, fake_gateway, pending_order, notifier):
        order, _ = pending_order
        lifecycle.handle_payment_cancel(order.id)
        fake_gateway.configure(should_succeed=False)
        sent = len(notifier.sent)

        with pytest.raises(PaymentVerificationFailed):
            lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        cancelled = lifecycle.get_by_id(order.id)
        assert cancelled.payment_status == PaymentStatus.UNPAID.value
        assert cancelled.cancellation_reason == "Payment cancelled by customer"
        assert len(notifier.sent) == sent

    def test_cash_on_delivery_order_cannot_be_reconciled(
        self, lifecycle, fake_gateway, make_product, add_to_cart, cod_request
    ):
        add_to_cart(USER, make_product().id)
        order = lifecycle.create_order(USER, cod_request()).order

        with pytest.raises(InvalidTransition):
            lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)


class TestPaymentAfterCancellation:
    def test_payment_verified_after_abandon_is_kept_for_refund(
        self, lifecycle, fake_gateway, pending_order, stock_of, notifier
    ):
        order, product = pending_order
        verify = fake_gateway.verify

        def abandon_while_verifying(token, order_id, is_duplicate=None):
            lifecycle.handle_payment_cancel(order_id)
            return verify(token, order_id, is_duplicate=is_duplicate)

        fake_gateway.verify = abandon_while_verifying
        transaction_id = fake_gateway.initiated[str(order.id)]

        late = lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        assert late.status == OrderStatus.CANCELLED.value
        assert late.payment_status == PaymentStatus.PAID.value
        assert late.external_transaction_id == transaction_id
        assert late.cancellation_reason == "Payment cancelled by customer; refund required"
        assert late.stock_committed is False
        assert stock_of(product.id) == 4
        assert notifier.of_kind("status_changed")[-1]["status"] == "CANCELLED"

    def test_payment_after_cancel_is_kept_for_refund(self, lifecycle, fake_gateway, pending_order, stock_of):
        order, product = pending_order
        lifecycle.handle_payment_cancel(order.id)

        late = lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        assert late.payment_status == PaymentStatus.PAID.value
        assert "refund required" in late.cancellation_reason
        assert stock_of(product.id) == 4

    def test_payment_after_reservation_expired_is_kept_for_refund(
        self, soft_lifecycle, fake_gateway, make_product, add_to_cart, stock_of, online_request
    ):
        product = make_product(stock=4)
        add_to_cart(USER, product.id, quantity=2)
        order = soft_lifecycle.create_order(USER, online_request()).order
        soft_lifecycle.release_expired_reservations(order.reserved_until + timedelta(minutes=1))

        late = soft_lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        assert late.status == OrderStatus.CANCELLED.value
        assert late.payment_status == PaymentStatus.PAID.value
        assert late.cancellation_reason == "Payment window expired; refund required"
        assert stock_of(product.id) == 4

    def test_repeated_late_callback_is_a_no_op(self, lifecycle, fake_gateway, pending_order):
        order, _ = pending_order
        lifecycle.handle_payment_cancel(order.id)
        token = fake_gateway.callback_token(order.id)
        lifecycle.reconcile_payment(token, order.id)

        again = lifecycle.reconcile_payment(token, order.id)

        assert again.cancellation_reason == "Payment cancelled by customer; refund required"


class TestRacingCallbacks:
    def test_losing_callback_sends_no_second_notification(self, lifecycle, fake_gateway, pending_order, notifier):
        order, _ = pending_order
        token = fake_gateway.callback_token(order.id)
        verify = fake_gateway.verify
        raced = []

        def verify_while_other_callback_lands(token, order_id, is_duplicate=None):
            result = verify(token, order_id, is_duplicate=is_duplicate)
            if not raced:
                raced.append(order_id)
                lifecycle.reconcile_payment(token, order_id)
            return result

        fake_gateway.verify = verify_while_other_callback_lands

        confirmed = lifecycle.reconcile_payment(token, order.id)

        assert confirmed.status == OrderStatus.CONFIRMED.value
        assert [n["status"] for n in notifier.of_kind("status_changed")] == ["CONFIRMED"]


class TestStockGoneAfterPayment:
    def test_second_payer_for_last_unit_is_flagged_for_refund(
        self, lifecycle, fake_gateway, make_product, stock_of, online_request
    ):
        product = make_product(stock=1)
        request = online_request(is_buy_now=True, product_id=str(product.id), quantity=1)
        first = lifecycle.create_order("user-a", request).order
        second = lifecycle.create_order("user-b", request).order

        lifecycle.reconcile_payment(fake_gateway.callback_token(first.id), first.id)
        late = lifecycle.reconcile_payment(fake_gateway.callback_token(second.id), second.id)

        assert late.status == OrderStatus.CANCELLED.value
        assert late.payment_status == PaymentStatus.PAID.value
        assert "refund required" in late.cancellation_reason
        assert stock_of(product.id) == 0


class TestPaymentAbandonment:
    def test_abandon_without_reservation(self, lifecycle, pending_order, stock_of, notifier):
        order, product = pending_order
        lifecycle.handle_payment_cancel(order.id)

        assert lifecycle.get_by_id(order.id).status == OrderStatus.CANCELLED.value
        assert stock_of(product.id) == 4
        assert notifier.of_kind("status_changed")[-1]["status"] == "CANCELLED"

    def test_abandon_releases_soft_reservation(
        self, soft_lifecycle, make_product, add_to_cart, stock_of, online_request
    ):
        product = make_product(stock=4)
        add_to_cart(USER, product.id, quantity=2)
        order = soft_lifecycle.create_order(USER, online_request()).order
        assert stock_of(product.id) == 2

        soft_lifecycle.handle_payment_cancel(order.id)

        assert stock_of(product.id) == 4

    def test_abandoned_reservation_of_last_units_leaves_buyers_cart_intact(
        self, soft_lifecycle, make_product, add_to_cart, stock_of, online_request
    ):
        product = make_product(stock=2)
        add_to_cart(USER, product.id, quantity=2)
        add_to_cart("user-002", product.id, quantity=1)
        order = soft_lifecycle.create_order(USER, online_request()).order
        assert stock_of(product.id) == 0
        assert _cart_of("user-002") == []

        soft_lifecycle.handle_payment_cancel(order.id)

        assert stock_of(product.id) == 2
        assert [(str(item.product_id), item.quantity) for item in _cart_of(USER)] == [(str(product.id), 2)]
        retried = soft_lifecycle.create_order(USER, online_request()).order
        assert retried.status == OrderStatus.PENDING.value

    def test_cash_on_delivery_order_cannot_be_abandoned(self, lifecycle, make_product, add_to_cart, cod_request):
        add_to_cart(USER, make_product().id)
        order = lifecycle.create_order(USER, cod_request()).order
        with pytest.raises(CannotCancel):
            lifecycle.handle_payment_cancel(order.id)


class TestReservationExpiry:
    def test_expired_reservations_are_released(
        self, soft_lifecycle, make_product, add_to_cart, stock_of, online_request
    ):
        product = make_product(stock=4)
        add_to_cart(USER, product.id, quantity=2)
        order = soft_lifecycle.create_order(USER, online_request()).order

        released = soft_lifecycle.release_expired_reservations(order.reserved_until + timedelta(minutes=1))

        assert released == [str(order.id)]
        assert stock_of(product.id) == 4
        expired = soft_lifecycle.get_by_id(order.id)
        assert expired.status == OrderStatus.CANCELLED.value
        assert expired.cancellation_reason == "Payment window expired"

    def test_live_reservations_are_kept(self, soft_lifecycle, make_product, add_to_cart, stock_of, online_request):
        product = make_product(stock=4)
        add_to_cart(USER, product.id, quantity=2)
        order = soft_lifecycle.create_order(USER, online_request()).order

        released = soft_lifecycle.release_expired_reservations(order.reserved_until - timedelta(minutes=1))

        assert released == []
        assert stock_of(product.id) == 2

    def test_paid_orders_are_not_swept(self, soft_lifecycle, fake_gateway, make_product, add_to_cart, online_request):
        add_to_cart(USER, make_product().id)
        order = soft_lifecycle.create_order(USER, online_request()).order
        soft_lifecycle.reconcile_payment(fake_gateway.callback_token(order.id), order.id)

        assert soft_lifecycle.release_expired_reservations(order.reserved_until + timedelta(hours=1)) == []
