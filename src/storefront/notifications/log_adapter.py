"""Notification sink that writes alerts to the structured log.

Used when no delivery channel is wired up; operators pick alerts out of the
log stream by their ``alert`` key.
"""

from dataclasses import asdict

import structlog

from storefront.notifications.port import AdminAlert, LowStockAlert, NotificationSink

logger = structlog.get_logger(__name__)


class LogNotificationSink(NotificationSink):
    def emit(self, alert: LowStockAlert | AdminAlert) -> None:
        if isinstance(alert, LowStockAlert):
            logger.warning("Low stock", alert="low_stock", **asdict(alert))
        else:
            logger.warning(alert.subject, alert="admin", message=alert.message, **alert.context)
