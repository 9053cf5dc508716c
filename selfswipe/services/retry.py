"""Exponential backoff for transient provider failures."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from ..config import RetryConfig
from ..exceptions import TransientProviderError


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry transient errors with delays of base, 2*base, 4*base, ...

    ``backoff_after_final`` also waits after the last failed attempt before the
    error surfaces, so a caller sees the full 2s/4s/8s schedule.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    backoff_after_final: bool = False
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    @classmethod
    def from_config(cls, config: RetryConfig, **overrides) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            **overrides,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based attempt."""
        return self.base_delay * (2 ** (attempt - 1))

    async def run(self, operation: Callable[[], Awaitable[T]], label: str = "provider call") -> T:
        """Await ``operation`` until it succeeds or retries are exhausted.

        Non-transient errors propagate immediately. When every attempt fails
        with a transient error, the last one is re-raised.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except TransientProviderError as exc:
                logger.warning(
                    "❌ %s failed (attempt %d/%d): %s",
                    label, attempt, self.max_attempts, exc,
                )
                is_final = attempt == self.max_attempts
                if is_final and not self.backoff_after_final:
                    raise
                delay = self.delay_for(attempt)
                if is_final:
                    await self.sleep(delay)
                    raise
                logger.info("⏳ Retrying %s in %.1fs", label, delay)
                await self.sleep(delay)

        raise AssertionError("unreachable")  # max_attempts >= 1
