import pytest
import requests
from payments.gateway.esewa_adapter import EsewaGateway, EsewaSettings


class StubResponse:
    def __init__(self, status_code=200, payload=None, url=""):
        self.status_code = status_code
        self.url = url
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class StubSession:
    """Scripted stand-in for ``requests.Session``: each call pops the next outcome."""

    def __init__(self, get=None, post=None):
        self.get_outcomes = list(get or [])
        self.post_outcomes = list(post or [])
        self.requests: list[dict] = []

    def _next(self, outcomes, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get(self, url, **kwargs):
        return self._next(self.get_outcomes, "GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next(self.post_outcomes, "POST", url, **kwargs)


class StubOrder:
    def __init__(self, order_id="order-001", total_price=1900.0):
        self.id = order_id
        self.total_price = total_price


@pytest.fixture()
def esewa_settings():
    return EsewaSettings(
        merchant_code="EPAYTEST",
        secret_key="8gBm/:&EnhH.1/q",
        payment_url="https://esewa.test/api/epay/main/v2/form",
        verification_url="https://esewa.test/api/epay/transaction/status/",
        frontend_url="https://shop.test/",
        backoff_seconds=0.5,
    )


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def make_gateway(esewa_settings, sleeps):
    def _make(get=None, post=None):
        session = StubSession(get=get, post=post)
        return EsewaGateway(esewa_settings, session=session, sleep=sleeps.append), session

    return _make


@pytest.fixture()
def stub_response():
    return StubResponse


@pytest.fixture()
def stub_order():
    return StubOrder


@pytest.fixture()
def network_error():
    return requests.ConnectionError("connection refused")
