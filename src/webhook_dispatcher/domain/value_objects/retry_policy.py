from __future__ import annotations

from dataclasses import dataclass

DEFAULT_INITIAL_DELAY = 5
DEFAULT_MULTIPLIER = 3
DEFAULT_MAX_RETRIES = 3


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff for redelivery.

    With the defaults the retries fire 5, 15 and 45 time units after the
    previous attempt; the third retry is the last one.
    """

    initial_delay: int = DEFAULT_INITIAL_DELAY
    multiplier: int = DEFAULT_MULTIPLIER
    max_retries: int = DEFAULT_MAX_RETRIES
    time_unit: float = 1.0

    def __post_init__(self) -> None:
        for name in ("initial_delay", "multiplier", "max_retries"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if self.time_unit <= 0:
            raise ValueError(f"time_unit must be positive, got {self.time_unit!r}")

    def seconds(self, interval: int) -> float:
        return interval * self.time_unit
