"""Stress test scenarios for stock contention.

HotProductUser sends every simulated customer after the same product so
that placements queue on one stock lock. Sold-out and lock-conflict
answers are expected outcomes; anything else is a failure. After the run
the product's stock must never have gone below zero.
"""

import os

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import buy_now_order, product_ids, unique_user_id
from loadtests.helpers.response import error_kind, extract_error_detail

EXPECTED_REFUSALS = {"INSUFFICIENT_STOCK", "STOCK_CONFLICT"}


class HotProductUser(HttpUser):
    """Stress test: many customers, one product, one unit each."""

    wait_time = constant_pacing(0.1)  # ~10 requests/sec per user

    def on_start(self):
        self.product_id = os.getenv("LOADTEST_HOT_PRODUCT_ID") or product_ids()[0]

    @task
    def buy_last_units(self):
        with self.client.post(
            "/orders",
            json=buy_now_order(unique_user_id(), product_id=self.product_id, quantity=1),
            catch_response=True,
            name="[STRESS] POST /orders (hot product)",
        ) as resp:
            if resp.status_code == 201 or error_kind(resp) in EXPECTED_REFUSALS:
                resp.success()
            else:
                resp.failure(f"Unexpected answer: {resp.status_code}: {extract_error_detail(resp)}")
