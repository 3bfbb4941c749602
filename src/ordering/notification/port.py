"""Notification sink port — how the ordering core tells customers about their orders."""

from abc import ABC, abstractmethod


class NotificationSink(ABC):
    """Abstract interface for order notifications.

    Delivery is best-effort: the lifecycle engine logs and swallows whatever a
    sink raises, so implementations need not guard themselves.
    """

    @abstractmethod
    def notify_order_placed(self, order) -> None: ...

    @abstractmethod
    def notify_status_changed(self, order) -> None: ...
