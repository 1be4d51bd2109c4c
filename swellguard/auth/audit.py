# auth/audit.py
"""
Security audit logging for SwellGuard.

Every component reports what it does through the ``AuditLogger``. Recording is
best-effort: a failing or slow sink never surfaces to the caller. Events the
sink could not take are kept in a bounded local buffer, are still visible to
queries and are retried by the background sweep. Each recorded event is
sealed into a SHA-256 hash chain so gaps and edits can be detected later.
"""
import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Protocol, runtime_checkable

import httpx
from sqlalchemy import JSON, DateTime, Integer, String, Text, select
from sqlalchemy.orm import Mapped, mapped_column

from ..core import call_with_timeout
from ..core.exceptions import CollaboratorError
from ..db import Base, Database
from .models import AuditFilter, SecurityEvent, Severity

logger = logging.getLogger("swellguard.audit")

GENESIS_HASH = "0" * 64
MAX_QUERY_LIMIT = 500

_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


# === Collaborator contracts ===
@runtime_checkable
class AuditSink(Protocol):
    """Durable store for security events."""

    async def persist(self, event: SecurityEvent) -> bool:
        ...

    async def query(self, filter: AuditFilter, limit: int, offset: int) -> List[SecurityEvent]:
        ...


@runtime_checkable
class AlertHook(Protocol):
    """Receives critical events."""

    async def notify(self, event: SecurityEvent) -> None:
        ...


def _newest_first(events: Iterable[SecurityEvent]) -> List[SecurityEvent]:
    return sorted(events, key=lambda e: (e.timestamp, e.sequence or 0), reverse=True)


# === Sinks ===
class InMemoryAuditSink:
    """Process-local sink for development and tests."""

    def __init__(self):
        self.events: List[SecurityEvent] = []

    async def persist(self, event: SecurityEvent) -> bool:
        self.events.append(event)
        return True

    async def query(self, filter: AuditFilter, limit: int, offset: int) -> List[SecurityEvent]:
        matches = _newest_first(e for e in self.events if filter.matches(e))
        return matches[offset:offset + limit]

    async def tail(self) -> Optional[SecurityEvent]:
        return self.events[-1] if self.events else None


class SecurityEventRecord(Base):
    """Security event table."""
    __tablename__ = "security_events"

    sequence: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    subject_id: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
    action: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    resource: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    source_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)
    previous_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    digest: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    @classmethod
    def from_event(cls, event: SecurityEvent) -> "SecurityEventRecord":
        return cls(
            sequence=event.sequence,
            subject_id=event.subject_id,
            action=event.action,
            resource=event.resource,
            severity=event.severity.value,
            details=event.details,
            source_address=event.source_address,
            user_agent=event.user_agent,
            timestamp=event.timestamp,
            previous_hash=event.previous_hash,
            digest=event.digest,
        )

    def to_event(self) -> SecurityEvent:
        timestamp = self.timestamp
        # SQLite drops the timezone on the way back
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return SecurityEvent(
            sequence=self.sequence,
            subject_id=self.subject_id,
            action=self.action,
            resource=self.resource,
            severity=Severity(self.severity),
            details=self.details or {},
            source_address=self.source_address,
            user_agent=self.user_agent,
            timestamp=timestamp,
            previous_hash=self.previous_hash,
            digest=self.digest,
        )


class SQLAlchemyAuditSink:
    """Durable sink backed by the ``security_events`` table."""

    def __init__(self, database: Database):
        self.database = database

    async def persist(self, event: SecurityEvent) -> bool:
        async with self.database.get_session() as session:
            session.add(SecurityEventRecord.from_event(event))
        return True

    async def query(self, filter: AuditFilter, limit: int, offset: int) -> List[SecurityEvent]:
        stmt = select(SecurityEventRecord)
        if filter.subject_id is not None:
            stmt = stmt.where(SecurityEventRecord.subject_id == filter.subject_id)
        if filter.severity is not None:
            stmt = stmt.where(SecurityEventRecord.severity == filter.severity.value)
        if filter.action is not None:
            stmt = stmt.where(SecurityEventRecord.action == filter.action)
        if filter.since is not None:
            stmt = stmt.where(SecurityEventRecord.timestamp >= filter.since)
        stmt = (
            stmt.order_by(SecurityEventRecord.timestamp.desc(), SecurityEventRecord.sequence.desc())
            .offset(offset)
            .limit(limit)
        )
        async with self.database.get_session() as session:
            result = await session.execute(stmt)
            return [record.to_event() for record in result.scalars().all()]

    async def all_events(self) -> List[SecurityEvent]:
        """Every stored event in chain order."""
        async with self.database.get_session() as session:
            result = await session.execute(
                select(SecurityEventRecord).order_by(SecurityEventRecord.sequence.asc())
            )
            return [record.to_event() for record in result.scalars().all()]

    async def tail(self) -> Optional[SecurityEvent]:
        async with self.database.get_session() as session:
            result = await session.execute(
                select(SecurityEventRecord).order_by(SecurityEventRecord.sequence.desc()).limit(1)
            )
            record = result.scalar_one_or_none()
            return record.to_event() if record else None


# === Alert hooks ===
class LoggingAlertHook:
    """Writes critical events to the log."""

    async def notify(self, event: SecurityEvent) -> None:
        logger.critical(
            f"CRITICAL SECURITY EVENT: {event.action} on {event.resource} "
            f"subject={event.subject_id} source={event.source_address}"
        )


class WebhookAlertHook:
    """POSTs critical events as JSON to an alerting endpoint."""

    def __init__(self, url: str, timeout: float = 2.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def notify(self, event: SecurityEvent) -> None:
        payload = event.model_dump(mode="json")
        if self._client is not None:
            response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()


# === Chain verification ===
@dataclass
class ChainVerification:
    """Result of walking a sealed event chain."""
    valid: bool
    checked: int
    broken_at: Optional[int] = None
    reason: Optional[str] = None


def verify_chain(events: Iterable[SecurityEvent]) -> ChainVerification:
    """Re-derive every digest and link of a chain segment.

    The first event's ``previous_hash`` is trusted, so any contiguous segment
    of a chain can be verified on its own.
    """
    ordered = sorted(events, key=lambda e: e.sequence if e.sequence is not None else -1)
    previous: Optional[SecurityEvent] = None
    checked = 0
    for event in ordered:
        if event.sequence is None or event.digest is None:
            return ChainVerification(False, checked, event.sequence, "event was never sealed")
        if event.compute_digest() != event.digest:
            return ChainVerification(False, checked, event.sequence, "digest mismatch")
        if previous is not None:
            if event.sequence != previous.sequence + 1:
                return ChainVerification(False, checked, event.sequence, "sequence gap")
            if event.previous_hash != previous.digest:
                return ChainVerification(False, checked, event.sequence, "broken link")
        previous = event
        checked += 1
    return ChainVerification(True, checked)


# === Logger ===
class AuditLogger:
    """Records security events without ever failing its caller."""

    def __init__(
        self,
        sink: Optional[AuditSink] = None,
        alert_hook: Optional[AlertHook] = None,
        *,
        sink_timeout: float = 2.0,
        alert_timeout: float = 2.0,
        buffer_size: int = 1000,
        clock: Callable[[], float] = time.time
    ):
        self.sink = sink if sink is not None else InMemoryAuditSink()
        self.alert_hook = alert_hook
        self.sink_timeout = sink_timeout
        self.alert_timeout = alert_timeout
        self._clock = clock
        self._fallback: Deque[SecurityEvent] = deque(maxlen=buffer_size)
        self._chain_lock = asyncio.Lock()
        self._sequence = 0
        self._last_digest = GENESIS_HASH
        self.dropped_events = 0

    async def initialize(self) -> None:
        """Continue the hash chain from the newest event already in the sink."""
        tail = getattr(self.sink, "tail", None)
        if tail is None:
            return
        try:
            last = await call_with_timeout(tail(), self.sink_timeout, name="audit sink tail")
        except CollaboratorError:
            logger.warning("Could not read audit chain tail; starting a new chain segment")
            return
        if last is not None and last.sequence is not None and last.digest:
            async with self._chain_lock:
                self._sequence = last.sequence
                self._last_digest = last.digest

    async def record(self, event: SecurityEvent) -> None:
        """Seal, persist and (for critical events) alert. Never raises."""
        try:
            sealed = await self._seal(event)
            self._mirror_to_log(sealed)
            await self._persist(sealed)
            if sealed.severity == Severity.CRITICAL:
                await self._alert(sealed)
        except Exception:
            logger.exception(f"Unexpected failure while recording security event {event.action}")

    async def log_event(
        self,
        action: str,
        resource: str,
        severity: Severity,
        subject_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        source_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> None:
        """Build a security event stamped with the logger's clock and record it."""
        try:
            event = SecurityEvent(
                action=action,
                resource=resource,
                severity=severity,
                subject_id=subject_id,
                details=details or {},
                source_address=source_address,
                user_agent=user_agent,
                timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
            )
        except Exception:
            logger.exception(f"Could not build security event {action}")
            return
        await self.record(event)

    async def query(
        self,
        filter: Optional[AuditFilter] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[SecurityEvent]:
        """Return matching events newest-first, including ones still waiting in the fallback buffer."""
        filter = filter or AuditFilter()
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        offset = max(0, offset)
        window = offset + limit

        try:
            persisted = await call_with_timeout(
                self.sink.query(filter, window, 0),
                self.sink_timeout,
                name="audit sink query"
            )
        except CollaboratorError:
            persisted = []

        merged: Dict[str, SecurityEvent] = {}
        for event in list(persisted) + [e for e in self._fallback if filter.matches(e)]:
            merged[event.digest or str(id(event))] = event
        return _newest_first(merged.values())[offset:window]

    def fallback_events(self) -> List[SecurityEvent]:
        """Events the sink has not accepted yet, oldest first."""
        return list(self._fallback)

    async def flush_fallback(self) -> int:
        """Retry buffered events against the sink. Returns how many were persisted."""
        pending = list(self._fallback)
        self._fallback.clear()
        flushed = 0
        for index, event in enumerate(pending):
            if not await self._try_persist(event):
                # Keep the remainder, ahead of anything buffered meanwhile
                retained = pending[index:] + list(self._fallback)
                overflow = len(retained) - self._fallback.maxlen
                if overflow > 0:
                    self.dropped_events += overflow
                    logger.error(f"Audit fallback buffer is full; dropping the {overflow} oldest buffered events")
                self._fallback.clear()
                self._fallback.extend(retained)
                break
            flushed += 1
        if flushed:
            logger.info(f"Flushed {flushed} buffered security events to the audit sink")
        return flushed

    async def _seal(self, event: SecurityEvent) -> SecurityEvent:
        timestamp = event.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        async with self._chain_lock:
            self._sequence += 1
            linked = event.model_copy(update={
                "timestamp": timestamp,
                "sequence": self._sequence,
                "previous_hash": self._last_digest,
                "digest": None,
            })
            sealed = linked.model_copy(update={"digest": linked.compute_digest()})
            self._last_digest = sealed.digest
        return sealed

    def _mirror_to_log(self, event: SecurityEvent) -> None:
        logger.log(
            _LOG_LEVELS[event.severity],
            f"security event #{event.sequence} action={event.action} resource={event.resource} "
            f"severity={event.severity.value} subject={event.subject_id} source={event.source_address}"
        )

    async def _try_persist(self, event: SecurityEvent) -> bool:
        try:
            accepted = await call_with_timeout(
                self.sink.persist(event),
                self.sink_timeout,
                name="audit sink",
                context={"sequence": event.sequence}
            )
        except CollaboratorError:
            return False
        return accepted is not False

    async def _persist(self, event: SecurityEvent) -> None:
        if await self._try_persist(event):
            return
        if len(self._fallback) == self._fallback.maxlen:
            self.dropped_events += 1
            logger.error("Audit fallback buffer is full; dropping the oldest buffered event")
        self._fallback.append(event)
        logger.warning(f"Audit sink unavailable; buffered security event #{event.sequence} locally")

    async def _alert(self, event: SecurityEvent) -> None:
        if self.alert_hook is None:
            return
        try:
            await call_with_timeout(
                self.alert_hook.notify(event),
                self.alert_timeout,
                name="alert hook",
                context={"sequence": event.sequence}
            )
        except CollaboratorError as e:
            logger.error(f"Alert hook failed for security event #{event.sequence}: {e}")
            # Recorded as high so it cannot trigger another alert
            await self.log_event(
                "alert_hook_failed",
                "audit",
                Severity.HIGH,
                subject_id=event.subject_id,
                details={"alerted_sequence": event.sequence, "alerted_action": event.action, "error": str(e)},
                source_address=event.source_address,
            )


__all__ = [
    'AuditSink', 'AlertHook', 'InMemoryAuditSink', 'SQLAlchemyAuditSink', 'SecurityEventRecord',
    'LoggingAlertHook', 'WebhookAlertHook', 'AuditLogger', 'ChainVerification', 'verify_chain',
    'GENESIS_HASH', 'MAX_QUERY_LIMIT'
]
