"""Ordering load test scenarios.

Three stateful SequentialTaskSet journeys covering a cash-on-delivery order
through delivery, an online order whose payment is abandoned, and a
customer cancellation that hands stock back.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import buy_now_order, unique_user_id
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderState


class _OrderJourney(SequentialTaskSet):
    payment_method = "CASH_ON_DELIVERY"

    def on_start(self):
        self.state = OrderState(user_id=unique_user_id())

    def _create_order(self):
        with self.client.post(
            "/orders",
            json=buy_now_order(self.state.user_id, payment_method=self.payment_method),
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                self.state.order_id = body["order"]["order_id"]
                self.state.current_status = body["order"]["status"]
                self.state.redirect_url = body["redirect_url"]
            elif resp.status_code == 400:
                # Sold out is an expected outcome under load
                resp.success()
                self.interrupt()
            else:
                resp.failure(f"Create order failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()

    def _set_status(self, status):
        with self.client.put(
            f"/orders/{self.state.order_id}/status",
            json={"status": status},
            catch_response=True,
            name="PUT /orders/{id}/status",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_status = resp.json()["status"]
            else:
                resp.failure(f"Status {status} failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()


class CashOnDeliveryJourney(_OrderJourney):
    """Create COD Order -> Track -> Ship -> Deliver.

    The happy path: stock is taken at placement and payment is collected
    on delivery.
    """

    @task
    def create_order(self):
        self._create_order()

    @task
    def track_order(self):
        with self.client.get(
            f"/orders/{self.state.order_id}/track",
            params={"user_id": self.state.user_id},
            catch_response=True,
            name="GET /orders/{id}/track",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Track failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def ship(self):
        self._set_status("SHIPPED")

    @task
    def deliver(self):
        self._set_status("DELIVERED")

    @task
    def done(self):
        self.interrupt()


class AbandonedPaymentJourney(_OrderJourney):
    """Create online Order -> Check Payment -> Abandon Payment.

    Models a customer who is redirected to the payment provider and
    walks away.
    """

    payment_method = "ESEWA"

    @task
    def create_order(self):
        self._create_order()

    @task
    def payment_status(self):
        with self.client.get(
            f"/orders/{self.state.order_id}/payment",
            catch_response=True,
            name="GET /orders/{id}/payment",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Payment status failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def abandon_payment(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/payment/cancel",
            catch_response=True,
            name="POST /orders/{id}/payment/cancel",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Abandon failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CustomerCancellationJourney(_OrderJourney):
    """Create COD Order -> Cancel -> List Orders."""

    @task
    def create_order(self):
        self._create_order()

    @task
    def cancel_order(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/cancel",
            json={"user_id": self.state.user_id},
            catch_response=True,
            name="POST /orders/{id}/cancel",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Cancel failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def list_orders(self):
        self.client.get("/orders", params={"user_id": self.state.user_id}, name="GET /orders")

    @task
    def done(self):
        self.interrupt()


class OrderingUser(HttpUser):
    """Weighted mix of the ordering journeys."""

    wait_time = between(0.5, 2)
    tasks = {
        CashOnDeliveryJourney: 5,
        AbandonedPaymentJourney: 2,
        CustomerCancellationJourney: 3,
    }
