"""Consecutive-failure tracking for admin logins.

Counters are keyed by identifier (usually ``email:source_address``). They only
go back to zero through ``reset``; there is no time-based unlock.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional


class _AttemptSlot:
    __slots__ = ("lock", "waiters")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.waiters = 0


class LockoutTracker:
    """Count failed authentication attempts per identifier."""

    def __init__(self, max_failures: int = 3) -> None:
        self.max_failures = max_failures
        self._failures: Dict[str, int] = {}
        self._attempts: Dict[str, _AttemptSlot] = {}
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def attempt(self, identifier: str) -> AsyncIterator[None]:
        """Serialize login attempts for one identifier.

        The lockout check and the failure it may record happen inside one
        attempt, so concurrent guesses cannot all pass the check before any
        failure is counted.
        """
        async with self._lock:
            slot = self._attempts.get(identifier)
            if slot is None:
                slot = self._attempts[identifier] = _AttemptSlot()
            slot.waiters += 1
        try:
            async with slot.lock:
                yield
        finally:
            async with self._lock:
                slot.waiters -= 1
                if slot.waiters == 0:
                    self._attempts.pop(identifier, None)

    async def record_failure(self, identifier: str) -> int:
        """Count a failure and return the new consecutive total."""
        async with self._lock:
            count = self._failures.get(identifier, 0) + 1
            self._failures[identifier] = count
            return count

    async def is_locked_out(self, identifier: str, max_failures: Optional[int] = None) -> bool:
        limit = self.max_failures if max_failures is None else max_failures
        async with self._lock:
            return self._failures.get(identifier, 0) >= limit

    async def failure_count(self, identifier: str) -> int:
        async with self._lock:
            return self._failures.get(identifier, 0)

    async def reset(self, identifier: str) -> None:
        async with self._lock:
            self._failures.pop(identifier, None)

    async def locked_identifiers(self, max_failures: Optional[int] = None) -> List[str]:
        """Identifiers currently at or over the failure limit."""
        limit = self.max_failures if max_failures is None else max_failures
        async with self._lock:
            return sorted(key for key, count in self._failures.items() if count >= limit)


__all__ = ['LockoutTracker']
