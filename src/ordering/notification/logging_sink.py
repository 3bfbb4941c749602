"""Default notification sink: records notifications in the structured log."""

import structlog

from ordering.notification.port import NotificationSink

logger = structlog.get_logger(__name__)


class LoggingNotificationSink(NotificationSink):
    def notify_order_placed(self, order) -> None:
        logger.info(
            "notify_order_placed",
            order_id=str(order.id),
            placed_by=str(order.placed_by),
            total_price=order.total_price,
            vendors=[v for v in (order.vendor_ids or "").split(",") if v],
        )

    def notify_status_changed(self, order) -> None:
        logger.info(
            "notify_status_changed",
            order_id=str(order.id),
            placed_by=str(order.placed_by),
            status=order.status,
            payment_status=order.payment_status,
        )
