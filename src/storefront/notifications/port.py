"""Notification sink port: where low-stock and admin alerts go."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class LowStockAlert:
    product_id: str
    product_name: str
    variant_key: str
    remaining: int
    threshold: int


@dataclass(frozen=True)
class AdminAlert:
    subject: str
    message: str
    context: dict = field(default_factory=dict)


class NotificationSink(ABC):
    """Fire-and-forget receiver of storefront alerts."""

    @abstractmethod
    def emit(self, alert: LowStockAlert | AdminAlert) -> None:
        """Deliver one alert. Implementations may raise on delivery failure."""
        ...
