"""PromoCode aggregate — a named percentage discount on lines or shipping."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, String

from ordering.domain import ordering

MAX_PROMO_CODE_LENGTH = 50


class PromoScope(Enum):
    LINE_TOTAL = "LINE_TOTAL"
    SHIPPING_FEE = "SHIPPING_FEE"


@ordering.aggregate
class PromoCode:
    code = String(required=True, max_length=MAX_PROMO_CODE_LENGTH, unique=True)
    discount_percentage = Float(required=True, min_value=0.0, max_value=100.0)
    applies_to = String(choices=PromoScope, default=PromoScope.LINE_TOTAL.value)
    is_active = Boolean(default=True)
    valid_from = DateTime()
    valid_until = DateTime()

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValidationError({"valid_until": ["Validity window ends before it starts"]})

    def is_valid(self, now: datetime | None = None) -> bool:
        if not self.is_active:
            return False
        now = now or datetime.now(UTC)
        if self.valid_from and now < _aware(self.valid_from):
            return False
        if self.valid_until and now > _aware(self.valid_until):
            return False
        return True

    def deactivate(self):
        self.is_active = False


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


@dataclass(frozen=True)
class PromoTerms:
    """What the pricing calculator needs to know about a looked-up code."""

    code: str
    discount_percentage: float
    applies_to: PromoScope
    is_valid: bool


@ordering.repository(part_of=PromoCode)
class PromoCodeRepository:
    def by_code(self, code: str) -> PromoCode | None:
        return self._dao.query.filter(code=code).all().first


class PromoLookup:
    def __init__(self, domain) -> None:
        self._domain = domain

    def find_by_code(self, code: str, now: datetime | None = None) -> PromoTerms | None:
        if not code:
            return None
        promo = self._domain.repository_for(PromoCode).by_code(code.strip())
        if promo is None:
            return None
        return PromoTerms(
            code=promo.code,
            discount_percentage=promo.discount_percentage,
            applies_to=PromoScope(promo.applies_to),
            is_valid=promo.is_valid(now),
        )
