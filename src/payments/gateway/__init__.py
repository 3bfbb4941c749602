"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- EsewaGateway when ESEWA_MERCHANT and ESEWA_SECRET_KEY are configured
- FakeGateway for development and testing otherwise
"""

import os

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway."""
    global _current_gateway
    if _current_gateway is None:
        if os.getenv("ESEWA_MERCHANT"):
            from payments.gateway.esewa_adapter import EsewaGateway, EsewaSettings

            _current_gateway = EsewaGateway(EsewaSettings.from_env())
        else:
            _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
