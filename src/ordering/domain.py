"""Ordering bounded context — marketplace order placement and fulfillment.

Handles the order lifecycle, the stock ledger for products and variants,
pricing and shipping, carts, addresses, promo codes, and reconciliation of
external payment callbacks back into order and inventory state.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
