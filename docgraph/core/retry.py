"""
Retry Policy
============

Bounded retry with incremental delay for any fallible coroutine.

Delay before attempt N+1 is ``N * base_delay`` (1x, 2x, 3x ...). Only the
awaiting caller is delayed: sibling tasks already in flight keep running.

Usage:
    policy = RetryPolicy(max_attempts=3, base_delay=1.0)
    vectors = await policy.run(provider.embed, texts)
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Retry configuration.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        base_delay: Seconds multiplied by the attempt number between tries
        retry_on: Exception types considered transient
        sleep: Awaitable sleep function (swap for a no-op in tests)
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return attempt * self.base_delay

    async def run(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Await ``operation(*args, **kwargs)`` until it succeeds or attempts run out.

        Raises:
            The last exception raised by ``operation`` once every attempt failed.
            Exceptions not listed in ``retry_on`` propagate immediately.
        """
        name = getattr(operation, "__qualname__", repr(operation))

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation(*args, **kwargs)
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    log.error(
                        f"{name} failed after {self.max_attempts} attempts: {e}",
                        attempts=self.max_attempts,
                    )
                    raise

                delay = self.delay_for(attempt)
                log.warning(
                    f"{name} failed (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await self.sleep(delay)

        # max_attempts >= 1 guarantees a return or raise above
        raise AssertionError("unreachable")


__all__ = ["RetryPolicy"]
