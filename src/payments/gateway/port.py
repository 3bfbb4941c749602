"""Payment gateway port (abstract interface).

Defines the contract every redirect-based payment provider adapter must
implement: start a payment for an order and hand back where to send the
customer, then verify the callback the provider sends back.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RedirectDescriptor:
    """Where the customer must be sent to complete an online payment."""

    url: str
    transaction_id: str
    form: dict = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying a provider callback."""

    success: bool
    external_transaction_id: str | None = None
    amount: float | None = None
    message: str | None = None
    duplicate: bool = False


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def initiate(self, order) -> RedirectDescriptor:
        """Register a payment attempt for ``order`` with the provider."""
        ...

    @abstractmethod
    def verify(
        self,
        token: str,
        order_id: str,
        is_duplicate: Callable[[str], bool] | None = None,
    ) -> VerificationResult:
        """Verify a callback token.

        Raises ``SignatureMismatch`` for a forged or tampered token and
        ``PaymentVerificationFailed`` for an unreadable token or a provider
        that refuses or cannot answer. A transaction for which
        ``is_duplicate`` answers True yields ``success=False, duplicate=True``.
        """
        ...
