"""Fake notification sink: records alerts in memory for testing."""

from storefront.notifications.port import AdminAlert, LowStockAlert, NotificationSink


class FakeNotificationSink(NotificationSink):
    """Sink that records alerts for test assertions and can be told to fail."""

    def __init__(self):
        self.alerts: list[LowStockAlert | AdminAlert] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake sink behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def emit(self, alert: LowStockAlert | AdminAlert) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        self.alerts.append(alert)

    @property
    def low_stock_alerts(self) -> list[LowStockAlert]:
        return [a for a in self.alerts if isinstance(a, LowStockAlert)]

    @property
    def admin_alerts(self) -> list[AdminAlert]:
        return [a for a in self.alerts if isinstance(a, AdminAlert)]

    def reset(self):
        """Clear recorded alerts (useful between tests)."""
        self.alerts.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
