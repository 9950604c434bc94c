"""Sliding-window rate limiter: per-provider requests-per-minute admission control.

Counts requests dispatched to each provider over the trailing 60 seconds.
``check_limit`` is a yes/no gate: it never sleeps or waits for a slot.
Expired entries are pruned lazily on each check, so the cost is bounded by
live traffic rather than by a timer.

Safe for concurrent coroutines via asyncio.Lock (one lock per provider).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field

from genmedia.gateway.types import ProviderId

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
FALLBACK_RPM = 10

DEFAULT_RPM_LIMITS: dict[ProviderId, int] = {
    ProviderId.OPENROUTER: 60,
    ProviderId.FAL: 30,  # Conservative, media generation is expensive
    ProviderId.MODELSLAB: 20,
}


@dataclass
class _ProviderWindow:
    """Sliding window for a single provider."""

    rpm_limit: int
    timestamps: deque[float] = field(default_factory=deque)  # time.monotonic()
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def prune(self, now: float) -> None:
        """Drop entries older than the 1-minute window."""
        cutoff = now - WINDOW_SECONDS
        while self.timestamps and self.timestamps[0] <= cutoff:
            self.timestamps.popleft()

    @property
    def current_rpm(self) -> int:
        return len(self.timestamps)


class SlidingWindowRateLimiter:
    """Per-provider sliding-window limiter shared by all adapters in a process.

    Construct one at startup and hand it to every adapter; tests build their own.

    Usage:
        limiter = SlidingWindowRateLimiter()

        if not await limiter.check_limit(ProviderId.FAL):
            raise RateLimitError(ProviderId.FAL)

        # Immediately before each physical HTTP call:
        await limiter.record_request(ProviderId.FAL)
    """

    def __init__(self, limits: dict[ProviderId, int] | None = None, clock=time.monotonic):
        limits = {**DEFAULT_RPM_LIMITS, **(limits or {})}
        self._clock = clock
        self._windows: dict[ProviderId, _ProviderWindow] = {
            provider: _ProviderWindow(rpm_limit=rpm) for provider, rpm in limits.items()
        }

    def _get_window(self, provider: ProviderId) -> _ProviderWindow:
        """Get or create the window for a provider."""
        if provider not in self._windows:
            self._windows[provider] = _ProviderWindow(rpm_limit=FALLBACK_RPM)
        return self._windows[provider]

    def set_limit(self, provider: ProviderId, rpm: int) -> None:
        if rpm <= 0:
            raise ValueError(f"rpm must be positive, got {rpm}")
        self._get_window(provider).rpm_limit = rpm

    def get_limit(self, provider: ProviderId) -> int:
        return self._get_window(provider).rpm_limit

    async def check_limit(self, provider: ProviderId) -> bool:
        """Return True if a new request to ``provider`` may proceed now."""
        window = self._get_window(provider)
        async with window.lock:
            window.prune(self._clock())
            allowed = window.current_rpm < window.rpm_limit

        if not allowed:
            logger.warning(
                "Rate limit reached for %s (%d/%d per minute)",
                provider.value,
                window.current_rpm,
                window.rpm_limit,
            )
        return allowed

    async def record_request(self, provider: ProviderId) -> None:
        """Record one outgoing physical request."""
        window = self._get_window(provider)
        async with window.lock:
            now = self._clock()
            window.prune(now)
            window.timestamps.append(now)

    def remaining_requests(self, provider: ProviderId) -> int:
        window = self._get_window(provider)
        window.prune(self._clock())
        return max(0, window.rpm_limit - window.current_rpm)

    def reset_at(self, provider: ProviderId) -> float:
        """Clock time at which the oldest entry leaves the window (now if empty)."""
        window = self._get_window(provider)
        now = self._clock()
        window.prune(now)
        if not window.timestamps:
            return now
        return window.timestamps[0] + WINDOW_SECONDS

    def get_stats(self, provider: ProviderId) -> dict:
        """Get current rate limit stats for a provider."""
        window = self._get_window(provider)
        now = self._clock()
        window.prune(now)
        return {
            "provider": provider.value,
            "current_rpm": window.current_rpm,
            "rpm_limit": window.rpm_limit,
            "remaining": max(0, window.rpm_limit - window.current_rpm),
            "reset_in_seconds": round(self.reset_at(provider) - now, 3),
        }

    def get_all_stats(self) -> list[dict]:
        return [self.get_stats(p) for p in self._windows]
