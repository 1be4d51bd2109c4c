# auth/rate_limiting.py
"""
Fixed-window rate limiting for authentication actions.
"""
import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .audit import AuditLogger
from .models import Severity


@dataclass
class RateLimitRecord:
    """Attempts seen for one identifier/action key in one window."""
    count: int
    window_start: float


class RateLimiter:
    """In-memory fixed-window rate limiter.

    The window a call falls in is derived from the clock on every call, so a
    record left over from an earlier window is simply restarted. ``sweep``
    only bounds memory; correctness never depends on it running.
    """

    def __init__(
        self,
        window_seconds: float = 60,
        audit: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time
    ):
        self.window_seconds = window_seconds
        self.audit = audit
        self._clock = clock
        self.records: Dict[str, RateLimitRecord] = {}
        self.lock = asyncio.Lock()

    @staticmethod
    def make_key(identifier: str, action: str) -> str:
        return f"{identifier}:{action}"

    def current_window(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        return math.floor(now / self.window_seconds) * self.window_seconds

    async def allow(self, identifier: str, action: str, limit: int) -> bool:
        """Count one attempt and report whether it is within ``limit`` for the current window."""
        key = self.make_key(identifier, action)
        async with self.lock:
            window = self.current_window()
            record = self.records.get(key)

            if record is None or record.window_start != window:
                self.records[key] = RateLimitRecord(count=1, window_start=window)
                return True

            if record.count < limit:
                record.count += 1
                return True

            count = record.count

        if self.audit is not None:
            await self.audit.log_event(
                "rate_limit_exceeded",
                action,
                Severity.MEDIUM,
                details={"identifier": identifier, "action": action, "count": count, "limit": limit},
            )
        return False

    async def retry_after(self, identifier: str, action: str) -> int:
        """Seconds until the key's current window closes."""
        async with self.lock:
            now = self._clock()
            window_end = self.current_window(now) + self.window_seconds
        return max(1, math.ceil(window_end - now))

    async def sweep(self) -> int:
        """Drop records from windows that have already closed."""
        async with self.lock:
            window = self.current_window()
            stale = [key for key, record in self.records.items() if record.window_start < window]
            for key in stale:
                del self.records[key]
        return len(stale)


__all__ = ['RateLimiter', 'RateLimitRecord']
