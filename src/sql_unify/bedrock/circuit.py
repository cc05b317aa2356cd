from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class CircuitBreaker:
    """Stop calling a failing service for a cool-down period.

    Opens after failure_threshold consecutive failures. Once reset_seconds
    have passed, allow() lets exactly one trial through (half-open); further
    calls are refused until the trial records a success (closes) or a
    failure (opens again for another cool-down).
    """

    failure_threshold: int = 5
    reset_seconds: float = 30.0
    failures: int = 0
    opened_at: float = field(default=0.0)
    half_open: bool = False

    @property
    def is_open(self) -> bool:
        return self.failures >= self.failure_threshold

    def allow(self) -> bool:
        if not self.is_open:
            return True
        if self.half_open:
            return False
        if (time.monotonic() - self.opened_at) >= self.reset_seconds:
            self.half_open = True
            return True
        return False

    def record_success(self) -> None:
        self.failures = 0
        self.opened_at = 0.0
        self.half_open = False

    def record_failure(self) -> None:
        self.failures += 1
        self.half_open = False
        if self.failures >= self.failure_threshold:
            self.opened_at = time.monotonic()
