"""Request deadlines and bounded exponential backoff for provider calls."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from ...config import Settings, settings as default_settings
from ...errors import OptimizationTimeoutError, ProviderUnavailableError, TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Deadline:
    """Absolute point in time by which a planning request must finish."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.budget = seconds
        self._expires_at = None if seconds is None else clock() + seconds

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, stage: str) -> None:
        if self.expired:
            raise OptimizationTimeoutError(
                f"Route optimization exceeded its {self.budget:.1f}s budget during {stage}."
            )


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    max_backoff_seconds: float = 8.0

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "RetryPolicy":
        config = config or default_settings
        return cls(
            max_attempts=config.provider_max_attempts,
            backoff_seconds=config.provider_backoff_seconds,
            max_backoff_seconds=config.provider_max_backoff_seconds,
        )

    def delay(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based)."""
        return min(self.backoff_seconds * (2 ** (attempt - 1)), self.max_backoff_seconds)


def call_with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    deadline: Deadline | None = None,
    description: str = "provider request",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying transient provider faults.

    Only :class:`TransientProviderError` is retried; every other exception
    propagates on the first occurrence. Exhausting ``policy.max_attempts``
    raises :class:`ProviderUnavailableError`.
    """
    deadline = deadline or Deadline.unbounded()
    attempt = 0
    while True:
        deadline.check(description)
        attempt += 1
        try:
            return operation()
        except TransientProviderError as exc:
            if attempt >= policy.max_attempts:
                logger.warning(f"{description} failed after {attempt} attempts: {exc}")
                raise ProviderUnavailableError(
                    f"Routing provider unavailable: {description} failed after {attempt} attempts ({exc})."
                ) from exc
            wait_time = policy.delay(attempt)
            remaining = deadline.remaining()
            if remaining is not None and wait_time >= remaining:
                raise OptimizationTimeoutError(
                    f"Route optimization budget exhausted while backing off from {description}."
                ) from exc
            logger.debug(
                f"{description} failed ({exc}), retrying in {wait_time:.1f}s "
                f"(attempt {attempt}/{policy.max_attempts})"
            )
            sleep(wait_time)
