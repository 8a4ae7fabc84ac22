"""
Backoff for failed queue polls.

Bounded exponential backoff with optional jitter, built on tenacity's
``wait_exponential``. With ``max_delay_seconds == base_delay_seconds`` and
jitter off it is a flat delay between retries.

The consumer does its own sleeping (on its stop event), so only the wait
strategy is used here, not tenacity's retry loop.
"""

import random
from dataclasses import dataclass, field
from typing import Callable

from tenacity import RetryCallState, wait_exponential

from shared.config import PipelineConfig


@dataclass
class Backoff:
    """Delay schedule for consecutive poll failures."""
    base_delay_seconds: float = 3.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    random_source: Callable[[], float] = field(default=random.random, repr=False)
    attempts: int = 0

    def __post_init__(self):
        self._wait = wait_exponential(
            multiplier=self.base_delay_seconds,
            max=self.max_delay_seconds,
            exp_base=self.exponential_base,
        )
        self._state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "Backoff":
        return cls(
            base_delay_seconds=config.backoff_seconds,
            max_delay_seconds=max(config.max_backoff_seconds, config.backoff_seconds),
        )

    def next_delay(self) -> float:
        """Delay before the next retry; each call counts one more failure."""
        self.attempts += 1
        self._state.attempt_number = self.attempts
        # clamped to max_delay_seconds, also once the exponent overflows
        delay = self._wait(self._state)
        if self.jitter:
            # uniform in [delay/2, delay]
            delay = delay / 2 + self.random_source() * delay / 2
        return delay

    def reset(self) -> None:
        """Forget past failures after a successful poll."""
        self.attempts = 0
