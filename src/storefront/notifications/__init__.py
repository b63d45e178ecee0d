"""Notification sink registry.

Provides get_notifier() / set_notifier() to swap implementations:
- LogNotificationSink by default (``NOTIFICATION_SINK=log``)
- FakeNotificationSink for development and testing (``NOTIFICATION_SINK=fake``)
"""

import os

from storefront.notifications.port import NotificationSink

_current_notifier: NotificationSink | None = None


def get_notifier() -> NotificationSink:
    """Return the current notification sink, building it from the environment on first use."""
    global _current_notifier
    if _current_notifier is None:
        sink_type = os.environ.get("NOTIFICATION_SINK", "log").lower()
        if sink_type == "fake":
            from storefront.notifications.fake_adapter import FakeNotificationSink

            _current_notifier = FakeNotificationSink()
        elif sink_type == "log":
            from storefront.notifications.log_adapter import LogNotificationSink

            _current_notifier = LogNotificationSink()
        else:
            raise ValueError(f"Unknown notification sink: {sink_type}")
    return _current_notifier


def set_notifier(notifier: NotificationSink) -> None:
    """Override the active notification sink (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    """Reset to the environment-configured sink."""
    global _current_notifier
    _current_notifier = None
