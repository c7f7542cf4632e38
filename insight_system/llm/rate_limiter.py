"""Request and token budgets for model calls.

Extraction runs its passes concurrently and the pipeline scores many fact
pairs back to back, so every model call goes through one shared
RateLimiter per client. Admission is all-or-nothing: a call only spends
from the request budget when the token budget can also cover it.
"""

import asyncio
import time
from typing import Optional

from loguru import logger

from insight_system.config.settings import settings


class TokenBucket:
    """
    Allowance that refills continuously up to a fixed capacity.

    Attributes:
        capacity: Maximum allowance held at once
        refill_rate: Allowance regained per second
        tokens: Allowance currently available
    """

    def __init__(self, capacity: float, refill_rate: float):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self._stamp = time.monotonic()

    @classmethod
    def per_minute(cls, limit: float) -> "TokenBucket":
        return cls(capacity=limit, refill_rate=limit / 60.0)

    def _refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self._stamp) * self.refill_rate)
        self._stamp = now

    def covers(self, amount: float) -> bool:
        self._refill()
        return self.tokens >= amount

    def acquire(self, amount: float = 1) -> bool:
        """Spend amount if available; returns False and spends nothing otherwise."""
        if not self.covers(amount):
            return False
        self.tokens -= amount
        return True

    def seconds_until(self, amount: float) -> float:
        """Seconds until amount is available, 0.0 if it already is."""
        self._refill()
        missing = min(amount, self.capacity) - self.tokens
        if missing <= 0:
            return 0.0
        if self.refill_rate <= 0:
            return float("inf")
        return missing / self.refill_rate


class RateLimiter:
    """
    Shared requests-per-minute and tokens-per-minute limiter.

    Waiters queue on an asyncio lock so calls are admitted in arrival
    order and a large request is not starved by small ones.
    """

    def __init__(self, max_rpm: Optional[int] = None, max_tpm: Optional[int] = None):
        self.rpm_bucket = TokenBucket.per_minute(max_rpm or settings.max_rpm)
        self.tpm_bucket = TokenBucket.per_minute(max_tpm or settings.max_tpm)
        self.throttled_seconds = 0.0
        self._lock = asyncio.Lock()

    def can_proceed(self, token_count: int) -> bool:
        """Admit one request of token_count tokens now, or admit nothing."""
        token_count = min(token_count, self.tpm_bucket.capacity)
        if not (self.rpm_bucket.covers(1) and self.tpm_bucket.covers(token_count)):
            return False
        self.rpm_bucket.acquire(1)
        self.tpm_bucket.acquire(token_count)
        return True

    async def wait_for_capacity(self, token_count: int) -> float:
        """
        Block until one request of token_count tokens is admitted.

        Requests larger than the whole token budget are clamped to it.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        async with self._lock:
            while not self.can_proceed(token_count):
                delay = max(
                    self.rpm_bucket.seconds_until(1),
                    self.tpm_bucket.seconds_until(token_count),
                    0.05,
                )
                if delay == float("inf"):
                    raise RuntimeError("Rate limiter has no refill and no remaining budget")
                logger.debug(f"Model budget exhausted, waiting {delay:.2f}s for {token_count} tokens")
                await asyncio.sleep(delay)
                waited += delay
        self.throttled_seconds += waited
        return waited
