"""Runtime settings for the ordering core, read from the environment."""

import os
from dataclasses import dataclass
from enum import Enum


class ReservationPolicy(Enum):
    NONE = "none"  # online orders reserve nothing until payment is verified
    SOFT = "soft"  # online orders commit stock at creation, released on expiry


@dataclass(frozen=True)
class OrderingSettings:
    reservation_policy: ReservationPolicy = ReservationPolicy.NONE
    reservation_ttl_minutes: int = 15
    lock_timeout_seconds: float = 2.0
    lock_retries: int = 3
    lock_backoff_seconds: float = 0.05

    @classmethod
    def from_env(cls) -> "OrderingSettings":
        return cls(
            reservation_policy=ReservationPolicy(os.getenv("ORDERING_RESERVATION_POLICY", "none").lower()),
            reservation_ttl_minutes=int(os.getenv("ORDERING_RESERVATION_TTL_MINUTES", "15")),
            lock_timeout_seconds=float(os.getenv("ORDERING_LOCK_TIMEOUT_SECONDS", "2.0")),
            lock_retries=int(os.getenv("ORDERING_LOCK_RETRIES", "3")),
            lock_backoff_seconds=float(os.getenv("ORDERING_LOCK_BACKOFF_SECONDS", "0.05")),
        )
