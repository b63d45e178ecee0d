"""Bounded retry with exponential backoff for contention-prone operations.

Order creation and payment reconciliation both run a whole Unit of Work per
attempt. When the event store rejects the commit because another writer got
there first, the attempt is thrown away and the operation runs again from a
fresh read. Business-rule failures are never retried.

Two bounds apply to every call:
    - ``max_attempts``: attempts, including the first one
    - ``deadline``: wall-clock seconds across all attempts and waits
"""

import os
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog
from protean.exceptions import ExpectedVersionError

from storefront.exceptions import ConcurrencyConflict, RetryExhausted, TemporarilyUnavailable

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CONFLICT_EXCEPTIONS: tuple[type[Exception], ...] = (ConcurrencyConflict, ExpectedVersionError)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times and how patiently to retry.

    The wait before attempt ``n + 1`` is
    ``initial_delay * exponential_base ** (n - 1)``, capped at ``max_delay``,
    plus up to ``jitter`` of itself at random.
    """

    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    exponential_base: float = 2.0
    jitter: float = 0.0
    deadline: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}.")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}.")
        if self.max_delay < self.initial_delay:
            raise ValueError(f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay}).")
        if self.exponential_base < 1.0:
            raise ValueError(f"exponential_base must be >= 1.0, got {self.exponential_base}.")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must be between 0.0 and 1.0, got {self.jitter}.")
        if self.deadline <= 0:
            raise ValueError(f"deadline must be positive, got {self.deadline}.")

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            max_attempts=int(os.environ.get("STOREFRONT_RETRY_MAX_ATTEMPTS", 3)),
            initial_delay=float(os.environ.get("STOREFRONT_RETRY_INITIAL_DELAY", 0.1)),
            max_delay=float(os.environ.get("STOREFRONT_RETRY_MAX_DELAY", 2.0)),
            deadline=float(os.environ.get("STOREFRONT_RETRY_DEADLINE", 5.0)),
        )


def calculate_backoff(attempt: int, policy: RetryPolicy) -> float:
    """Return the wait in seconds after the given (1-based) failed attempt."""
    delay = policy.initial_delay * (policy.exponential_base ** (attempt - 1))
    delay = min(delay, policy.max_delay)
    if policy.jitter > 0:
        delay += delay * policy.jitter * random.random()  # nosec B311 - not used for security
    return delay


def retry_on_conflict(
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    operation_name: str = "operation",
    retryable: tuple[type[Exception], ...] = CONFLICT_EXCEPTIONS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Run ``operation`` until it succeeds, retrying only ``retryable`` errors.

    Raises:
        RetryExhausted: every attempt raised a retryable error.
        TemporarilyUnavailable: the next wait would cross the deadline.
    """
    policy = policy or RetryPolicy.from_env()
    started = clock()
    last_error: Exception | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = operation()
        except retryable as exc:
            last_error = exc
            logger.warning(
                "Concurrent modification detected",
                operation=operation_name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                error=str(exc),
            )
        else:
            if attempt > 1:
                logger.info("Operation succeeded after retry", operation=operation_name, attempt=attempt)
            return result

        if attempt == policy.max_attempts:
            break

        delay = calculate_backoff(attempt, policy)
        elapsed = clock() - started
        if elapsed + delay > policy.deadline:
            logger.error(
                "Retry deadline exceeded",
                operation=operation_name,
                attempt=attempt,
                elapsed=round(elapsed, 3),
                deadline=policy.deadline,
            )
            raise TemporarilyUnavailable(operation_name, elapsed, attempt) from last_error

        sleep(delay)

    logger.error("Retries exhausted", operation=operation_name, attempts=policy.max_attempts)
    raise RetryExhausted(operation_name, policy.max_attempts, last_error) from last_error
