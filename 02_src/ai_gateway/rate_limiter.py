"""
Rate Limiter for the AI gateway.

Tracks a fixed request window per provider and rejects requests once the
window budget is exhausted.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateDecision:
    """Outcome of an admission check."""

    allowed: bool
    retry_after_seconds: int = 0
    count: int = 0
    limit: Optional[int] = None


class RateWindow:
    """
    Fixed request window for a single provider.

    The counter resets whenever the window has expired, before it is compared
    against the limit.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float]):
        """
        Args:
            limit: Max requests per window
            window_seconds: Window length
            clock: Monotonic clock in seconds
        """
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self.count = 0
        self.window_start = clock()
        self._lock = threading.Lock()

    def admit(self) -> RateDecision:
        """
        Count the request if the window has room.

        Returns:
            RateDecision with retry-after when denied
        """
        with self._lock:
            now = self._clock()
            elapsed = now - self.window_start

            if elapsed >= self.window_seconds:
                self.count = 0
                self.window_start = now
                elapsed = 0.0

            if self.count >= self.limit:
                retry_after = max(1, math.ceil(self.window_seconds - elapsed))
                return RateDecision(False, retry_after, self.count, self.limit)

            self.count += 1
            return RateDecision(True, 0, self.count, self.limit)

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            return {
                "count": self.count,
                "limit": self.limit,
                "window_start": self.window_start,
                "window_seconds": self.window_seconds,
            }

    def reset(self):
        with self._lock:
            self.count = 0
            self.window_start = self._clock()


class RateLimiter:
    """
    Rate limit control for all providers.

    Creates a window for each provider with a configured limit. Providers
    without a limit are always admitted. Admission is synchronous and does
    no I/O; each provider has its own lock.
    """

    def __init__(
        self,
        limits: Dict[str, int],
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            limits: Dict {provider: max requests per window}
            window_seconds: Window length (default 60 seconds = 1 minute)
            clock: Monotonic clock, injectable for tests
        """
        self.limits = dict(limits)
        self.window_seconds = window_seconds

        self._windows: Dict[str, RateWindow] = {}
        for provider, limit in self.limits.items():
            self._windows[provider] = RateWindow(limit, window_seconds, clock)

    def admit(self, provider: str) -> RateDecision:
        """
        Check and count a request for provider.

        Args:
            provider: Provider identifier

        Returns:
            RateDecision(allowed=True) or a denial with retry_after_seconds
        """
        window = self._windows.get(provider)
        if window is None:
            return RateDecision(True)

        decision = window.admit()
        if not decision.allowed:
            logger.warning(
                f"Rate limit exceeded for {provider}: {decision.count} requests / "
                f"{decision.limit} per {self.window_seconds:g}s, retry in {decision.retry_after_seconds}s"
            )
        return decision

    def usage(self, provider: str) -> Optional[Dict[str, float]]:
        """Current window state for provider, None if unlimited."""
        window = self._windows.get(provider)
        return window.snapshot() if window else None

    def reset(self, provider: Optional[str] = None):
        """Reset one provider's window, or all of them."""
        if provider is not None:
            window = self._windows.get(provider)
            if window:
                window.reset()
            return

        for window in self._windows.values():
            window.reset()
