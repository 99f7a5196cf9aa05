# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import asyncio
import threading
import time
from typing import Optional

from ledgerpipe.metrics import RATE_LIMITER_WAITS


class RateLimiter:
    """Token bucket shared by the requests of one RPC endpoint.

    Hosted RPC providers usually meter requests per minute. The bucket allows
    bursts of up to ``capacity`` requests and refills at ``refill_rate``
    tokens per second. Both blocking and asyncio callers are supported.

    Args:
        capacity: Maximum number of tokens in the bucket (burst size)
        refill_rate: Tokens added per second
    """

    def __init__(self, capacity: int, refill_rate: float):
        if capacity <= 0:
            raise ValueError("Capacity must be positive")
        if refill_rate <= 0:
            raise ValueError("Refill rate must be positive")

        self._capacity = capacity
        self._refill_rate = refill_rate
        self._tokens = float(capacity)
        self._last_refill = time.monotonic()

        self._sync_lock = threading.Lock()
        self._async_lock: Optional[asyncio.Lock] = None

        self._provider_name = "unknown"
        self._retry_after_until: Optional[float] = None

    def set_provider_name(self, provider_name: str) -> None:
        """Set provider name for metrics labeling."""
        self._provider_name = provider_name

    def _take(self, tokens: int) -> float:
        """Consume tokens if available, otherwise return the seconds to wait."""
        now = time.monotonic()
        if self._retry_after_until is not None:
            if now < self._retry_after_until:
                return self._retry_after_until - now
            self._retry_after_until = None

        self._refill_tokens()
        if self._tokens >= tokens:
            self._tokens -= tokens
            return 0.0
        return (tokens - self._tokens) / self._refill_rate

    def acquire(self, tokens: int = 1) -> None:
        """Acquire tokens, blocking the calling thread while the bucket is empty.

        Raises:
            ValueError: If tokens > capacity (impossible to fulfill)
        """
        if tokens > self._capacity:
            raise ValueError(f"Cannot acquire {tokens} tokens, capacity is {self._capacity}")

        with self._sync_lock:
            while True:
                wait_time = self._take(tokens)
                if wait_time <= 0:
                    return
                RATE_LIMITER_WAITS.labels(provider=self._provider_name, mode="sync").inc()
                time.sleep(wait_time)

    async def acquire_async(self, tokens: int = 1) -> None:
        """Acquire tokens without blocking the event loop.

        Raises:
            ValueError: If tokens > capacity (impossible to fulfill)
        """
        if tokens > self._capacity:
            raise ValueError(f"Cannot acquire {tokens} tokens, capacity is {self._capacity}")

        # Created lazily so the lock belongs to the running loop
        if self._async_lock is None:
            self._async_lock = asyncio.Lock()

        async with self._async_lock:
            while True:
                wait_time = self._take(tokens)
                if wait_time <= 0:
                    return
                RATE_LIMITER_WAITS.labels(provider=self._provider_name, mode="async").inc()
                await asyncio.sleep(wait_time)

    def notify_retry_after(self, seconds: float) -> None:
        """Honour a ``Retry-After`` answer: empty the bucket and hold callers off."""
        now = time.monotonic()
        self._retry_after_until = now + seconds
        self._tokens = 0.0
        self._last_refill = now
        RATE_LIMITER_WAITS.labels(provider=self._provider_name, mode="retry_after").inc()

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self._capacity, self._tokens + elapsed * self._refill_rate)
        self._last_refill = now

    def get_available_tokens(self) -> float:
        """Get current number of available tokens (for testing/debugging)."""
        self._refill_tokens()
        return self._tokens

    def get_capacity(self) -> int:
        return self._capacity

    def get_refill_rate(self) -> float:
        return self._refill_rate

    def reset(self) -> None:
        """Reset the rate limiter to initial state (for testing)."""
        with self._sync_lock:
            self._tokens = float(self._capacity)
            self._last_refill = time.monotonic()
            self._retry_after_until = None


def create_rate_limiter_from_config(
    rate_limit_per_min: Optional[int] = None,
    burst_size: Optional[int] = None,
    provider_name: str = "unknown",
) -> Optional[RateLimiter]:
    """Create a RateLimiter from configuration values.

    Returns:
        RateLimiter instance or None if rate limiting is disabled
    """
    if rate_limit_per_min is None or rate_limit_per_min <= 0:
        return None

    capacity = burst_size if burst_size is not None else rate_limit_per_min
    limiter = RateLimiter(capacity=capacity, refill_rate=rate_limit_per_min / 60.0)
    limiter.set_provider_name(provider_name)
    return limiter


__all__ = ["RateLimiter", "create_rate_limiter_from_config", "RATE_LIMITER_WAITS"]
