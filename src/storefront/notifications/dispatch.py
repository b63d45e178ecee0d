"""Best-effort delivery of alerts and callbacks after a commit.

Nothing here may fail the operation that triggered it: every error is logged
as an ExternalSideEffectFailure and swallowed at this boundary.
"""

from collections.abc import Callable, Iterable
from typing import Any

import structlog

from storefront.exceptions import ExternalSideEffectFailure
from storefront.notifications import get_notifier
from storefront.notifications.port import AdminAlert, LowStockAlert

logger = structlog.get_logger(__name__)


def emit_alerts(alerts: Iterable[LowStockAlert | AdminAlert]) -> int:
    """Send each alert to the active sink. Returns how many were delivered."""
    delivered = 0
    for alert in alerts:
        try:
            get_notifier().emit(alert)
            delivered += 1
        except Exception as exc:  # noqa: BLE001 - sink failures never propagate
            _log_failure("notification", exc, alert=type(alert).__name__)
    return delivered


def run_callback(callback: Callable[..., Any] | None, *args: Any) -> bool:
    """Invoke an optional post-commit callback. Returns False if it raised."""
    if callback is None:
        return True
    try:
        callback(*args)
        return True
    except Exception as exc:  # noqa: BLE001 - callback failures never propagate
        _log_failure("callback", exc, callback=getattr(callback, "__name__", repr(callback)))
        return False


def _log_failure(kind: str, exc: Exception, **context: Any) -> None:
    failure = ExternalSideEffectFailure(f"{kind} failed: {exc}")
    logger.error(
        "External side effect failed",
        kind=kind,
        error=str(failure),
        exc_type=type(exc).__name__,
        **context,
    )
