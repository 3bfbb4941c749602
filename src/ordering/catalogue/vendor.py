"""Vendor aggregate — the seller a product belongs to.

Only the fields the ordering core needs are modelled: the vendor's district
drives the shipping fee of every line it sells.
"""

from protean.fields import String

from ordering.domain import ordering


@ordering.aggregate
class Vendor:
    name = String(required=True, max_length=255)
    email = String(max_length=255)
    district = String(max_length=100)
