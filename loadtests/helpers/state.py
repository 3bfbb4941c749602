"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state — no cross-user sharing.
State tracks entity IDs returned by creation endpoints so follow-up
operations can reference them.
"""

from dataclasses import dataclass


@dataclass
class OrderState:
    """Tracks state for a single order lifecycle."""

    user_id: str | None = None
    order_id: str | None = None
    current_status: str | None = None
    redirect_url: str | None = None
