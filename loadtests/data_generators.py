"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the ordering API's validation
rules (complete shipping address, bounded quantities, known payment methods)
and match the exact field names expected by its Pydantic request schemas.

Products are not created through the API: seed them first with
``python src/manage.py seed-catalogue`` and export the printed ids as
``LOADTEST_PRODUCT_IDS`` (comma separated).
"""

import os
import random
import uuid

from faker import Faker

fake = Faker()

DISTRICTS = {
    "Kathmandu": "Bagmati",
    "Lalitpur": "Bagmati",
    "Bhaktapur": "Bagmati",
    "Kaski": "Gandaki",
    "Chitwan": "Bagmati",
    "Morang": "Koshi",
}


def product_ids() -> list[str]:
    """Seeded product ids; the load test cannot place orders without them."""
    raw = os.getenv("LOADTEST_PRODUCT_IDS", "")
    ids = [pid.strip() for pid in raw.split(",") if pid.strip()]
    if not ids:
        raise RuntimeError("Set LOADTEST_PRODUCT_IDS to the ids printed by `manage.py seed-catalogue`")
    return ids


def unique_user_id() -> str:
    """Generate unique user IDs like 'user-lt-a1b2c3d4'."""
    return f"user-lt-{uuid.uuid4().hex[:8]}"


def valid_phone() -> str:
    """Ten-digit mobile numbers, within the 20-character limit."""
    return f"98{random.randint(10_000_000, 99_999_999)}"


def shipping_address(district: str | None = None) -> dict:
    """Generate an AddressSchema payload with every required part filled in."""
    district = district or random.choice(list(DISTRICTS))
    return {
        "province": DISTRICTS.get(district, "Bagmati"),
        "district": district,
        "city": fake.city()[:100],
        "street_line": fake.street_address()[:255],
        "landmark": random.choice([None, f"Near {fake.company()}"[:255]]),
    }


def buy_now_order(
    user_id: str,
    product_id: str | None = None,
    payment_method: str = "CASH_ON_DELIVERY",
    quantity: int | None = None,
) -> dict:
    """Generate a CreateOrderRequest payload for a single buy-now line."""
    return {
        "user_id": user_id,
        "shipping_address": shipping_address(),
        "payment_method": payment_method,
        "is_buy_now": True,
        "product_id": product_id or random.choice(product_ids()),
        "quantity": quantity or random.randint(1, 3),
        "phone_number": valid_phone(),
    }
