"""Bounded retry for compare-and-swap and unique-insert conflicts."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from turista.domain.errors import ConflictRetryError, UnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a conflicting operation is attempted."""

    max_attempts: int = 3
    delay_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


def retry_on_conflict(operation: Callable[[], T], policy: RetryPolicy) -> T:
    """Run ``operation`` again while it raises ConflictRetryError.

    Other domain errors propagate on the first raise. When every attempt
    conflicts the last conflict is surfaced as UnavailableError.
    """
    last_conflict: ConflictRetryError | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except ConflictRetryError as exc:
            last_conflict = exc
            logger.warning(
                "Conflict on %s (attempt %s of %s)",
                exc.resource,
                attempt,
                policy.max_attempts,
            )
            if attempt < policy.max_attempts and policy.delay_seconds > 0:
                time.sleep(policy.delay_seconds * attempt)
    raise UnavailableError("Too much contention, please retry") from last_conflict
