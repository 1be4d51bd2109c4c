# swellguard/tasks/sweeper.py
"""Periodic housekeeping for the in-memory security state."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..auth.audit import AuditLogger
from ..auth.rate_limiting import RateLimiter
from ..auth.session_management import SessionStore

logger = logging.getLogger("swellguard.tasks")


@dataclass
class SweepResult:
    """What one sweep pass removed or flushed."""
    expired_sessions: int = 0
    stale_rate_limits: int = 0
    flushed_events: int = 0


class SecuritySweeper:
    """Evicts expired sessions and stale rate-limit windows and retries buffered audit events."""

    def __init__(
        self,
        sessions: SessionStore,
        rate_limiter: RateLimiter,
        audit: AuditLogger,
        interval_seconds: float = 300
    ):
        self.sessions = sessions
        self.rate_limiter = rate_limiter
        self.audit = audit
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="swellguard-sweeper")
        logger.info(f"Security sweeper started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Security sweeper stopped")

    async def run_once(self) -> SweepResult:
        # Each store is swept under its own lock, one after another
        result = SweepResult()
        result.expired_sessions = await self.sessions.sweep_expired()
        result.stale_rate_limits = await self.rate_limiter.sweep()
        result.flushed_events = await self.audit.flush_fallback()
        if result.expired_sessions or result.stale_rate_limits or result.flushed_events:
            logger.debug(f"Sweep result: {result}")
        return result

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Security sweep error: {e}")


__all__ = ['SecuritySweeper', 'SweepResult']
