# auth/session_management.py
"""
In-memory admin session lifecycle for SwellGuard.

One live session per subject. A new login replaces the previous session, and
validity is worked out from ``last_activity_at`` on every read.
"""
import asyncio
import dataclasses
import time
from typing import Callable, Dict, List, Optional, Union

from .audit import AuditLogger
from .models import AdminSession, Role, Severity


class SessionStore:
    """Admin session management service."""

    def __init__(
        self,
        audit: AuditLogger,
        timeout_seconds: float = 3600,
        sensitive_timeout_seconds: float = 1800,
        clock: Callable[[], float] = time.time
    ):
        self.audit = audit
        self.timeout_seconds = timeout_seconds
        self.sensitive_timeout_seconds = sensitive_timeout_seconds
        self._clock = clock
        self._sessions: Dict[str, AdminSession] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        subject_id: str,
        role: Union[Role, str],
        source_address: Optional[str] = None,
        *,
        user_agent: Optional[str] = None,
        mfa_verified: bool = True,
        sensitive: bool = False
    ) -> AdminSession:
        """Create a session for ``subject_id``, silently replacing any existing one."""
        now = self._clock()
        session = AdminSession(
            subject_id=subject_id,
            role=Role(role),
            created_at=now,
            last_activity_at=now,
            timeout_seconds=self.sensitive_timeout_seconds if sensitive else self.timeout_seconds,
            source_address=source_address,
            user_agent=user_agent,
            mfa_verified=mfa_verified,
            sensitive=sensitive,
        )
        async with self._lock:
            replaced = self._sessions.get(subject_id)
            self._sessions[subject_id] = session

        await self.audit.log_event(
            "session_created",
            "session",
            Severity.LOW,
            subject_id=subject_id,
            details={
                "role": session.role.value,
                "sensitive": sensitive,
                "replaced_previous": replaced is not None,
            },
            source_address=source_address,
            user_agent=user_agent,
        )
        return dataclasses.replace(session)

    async def touch(self, subject_id: str) -> bool:
        """Record activity. Expired sessions are evicted and reported as gone."""
        async with self._lock:
            session = self._sessions.get(subject_id)
            if session is None:
                return False
            now = self._clock()
            if not session.is_valid(now):
                del self._sessions[subject_id]
                expired = session
            else:
                session.last_activity_at = now
                return True

        await self._log_expiry(expired, "touch")
        return False

    async def is_valid(self, subject_id: str) -> bool:
        async with self._lock:
            session = self._sessions.get(subject_id)
            return session is not None and session.is_valid(self._clock())

    async def get(self, subject_id: str) -> Optional[AdminSession]:
        """A copy of the subject's session, or None if absent or expired."""
        async with self._lock:
            session = self._sessions.get(subject_id)
            if session is None or not session.is_valid(self._clock()):
                return None
            return dataclasses.replace(session)

    async def invalidate(self, subject_id: str, reason: str = "logout") -> None:
        async with self._lock:
            session = self._sessions.pop(subject_id, None)

        await self.audit.log_event(
            "session_invalidated",
            "session",
            Severity.LOW,
            subject_id=subject_id,
            details={"reason": reason, "had_session": session is not None},
            source_address=session.source_address if session else None,
        )

    async def sweep_expired(self) -> int:
        """Evict every expired session. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [s for s in self._sessions.values() if not s.is_valid(now)]
            for session in expired:
                del self._sessions[session.subject_id]

        for session in expired:
            await self._log_expiry(session, "sweep")
        return len(expired)

    async def active_sessions(self) -> List[AdminSession]:
        async with self._lock:
            now = self._clock()
            return [dataclasses.replace(s) for s in self._sessions.values() if s.is_valid(now)]

    async def _log_expiry(self, session: AdminSession, detected_by: str) -> None:
        await self.audit.log_event(
            "session_expired",
            "session",
            Severity.LOW,
            subject_id=session.subject_id,
            details={
                "detected_by": detected_by,
                "idle_seconds": round(self._clock() - session.last_activity_at, 3),
                "timeout_seconds": session.timeout_seconds,
            },
            source_address=session.source_address,
        )


__all__ = ['SessionStore']
