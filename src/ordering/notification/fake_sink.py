"""Fake notification sink — records notifications in memory for test assertions."""

from ordering.notification.port import NotificationSink


class FakeNotificationSink(NotificationSink):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_fail = False

    def configure(self, should_fail: bool = False) -> None:
        self.should_fail = should_fail

    def _record(self, kind, order) -> None:
        if self.should_fail:
            raise ConnectionError("Notification channel unavailable")
        self.sent.append({"kind": kind, "order_id": str(order.id), "status": order.status})

    def notify_order_placed(self, order) -> None:
        self._record("order_placed", order)

    def notify_status_changed(self, order) -> None:
        self._record("status_changed", order)

    def of_kind(self, kind) -> list[dict]:
        return [n for n in self.sent if n["kind"] == kind]

    def reset(self) -> None:
        self.sent.clear()
        self.should_fail = False
