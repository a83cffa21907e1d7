"""Retry classification and backoff schedule for provider calls."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

DEFAULT_RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff: ``base_delay_ms * 2**attempt`` between tries."""

    max_attempts: int = 3
    base_delay_ms: int = 200
    retryable_statuses: frozenset[int] = field(default_factory=lambda: DEFAULT_RETRYABLE_STATUSES)

    def is_retryable(self, outcome: int | BaseException) -> bool:
        """True for transient HTTP statuses and transport-level failures."""

        if isinstance(outcome, BaseException):
            return isinstance(outcome, (httpx.RequestError, OSError))
        return outcome in self.retryable_statuses

    def delay_seconds(self, attempt: int) -> float:
        """Delay before retrying after zero-indexed ``attempt``."""

        return self.base_delay_ms * (2**attempt) / 1000.0

    def has_attempts_left(self, attempt: int) -> bool:
        return attempt < self.max_attempts - 1

    def schedule(self) -> list[float]:
        """All inter-attempt delays, e.g. ``[0.2, 0.4]`` for three attempts."""

        return [self.delay_seconds(attempt) for attempt in range(self.max_attempts - 1)]


def is_retryable(outcome: int | BaseException, policy: RetryPolicy | None = None) -> bool:
    return (policy or RetryPolicy()).is_retryable(outcome)
