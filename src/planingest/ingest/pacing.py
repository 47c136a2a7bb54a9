"""Pacing policies applied between documents of a batch."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Protocol

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class PacingPolicy(Protocol):
    async def wait(self) -> None:
        """Block (without blocking the event loop) until the next document may start."""


class NoPacing:
    async def wait(self) -> None:
        return None


class FixedDelayPacer:
    """Sleep a constant delay before every document after the first."""

    def __init__(self, delay_seconds: float = 1.0, *, sleep: Sleep = asyncio.sleep) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    async def wait(self) -> None:
        if self.delay_seconds:
            LOGGER.debug("Pacing batch for %.3fs", self.delay_seconds)
            await self._sleep(self.delay_seconds)


class TokenBucketPacer:
    """Allow bursts of ``capacity`` documents, refilled at ``rate_per_second``.

    The first document of a batch never waits but still spends a token, so the
    bucket starts with ``capacity - 1``.
    """

    def __init__(
        self,
        rate_per_second: float = 1.0,
        capacity: int = 1,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate_per_second = rate_per_second
        self.capacity = capacity
        self._sleep = sleep
        self._clock = clock
        self._tokens = float(capacity - 1)
        self._updated = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate_per_second)
        self._updated = now

    async def wait(self) -> None:
        self._refill()
        if self._tokens < 1.0:
            delay = (1.0 - self._tokens) / self.rate_per_second
            LOGGER.debug("Token bucket empty; pacing batch for %.3fs", delay)
            await self._sleep(delay)
            self._refill()
            self._tokens = max(self._tokens, 1.0)
        self._tokens -= 1.0


def build_pacer(kind: str, *, delay_seconds: float, rate_per_second: float, burst: int) -> PacingPolicy:
    if kind == "fixed":
        return FixedDelayPacer(delay_seconds)
    if kind in {"token-bucket", "token_bucket"}:
        return TokenBucketPacer(rate_per_second, burst)
    if kind == "none":
        return NoPacing()
    raise ValueError(f"Unsupported batch pacing policy: {kind!r}")


__all__ = ["FixedDelayPacer", "NoPacing", "PacingPolicy", "TokenBucketPacer", "build_pacer"]
