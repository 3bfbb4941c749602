"""Ordering domain API package."""

from ordering.api.routes import order_router, promo_router, register_ordering_error_handlers, vendor_router

__all__ = ["order_router", "vendor_router", "promo_router", "register_ordering_error_handlers"]
