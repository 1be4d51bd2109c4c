"""
Unit tests for security audit logging.
"""
import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from swellguard.auth.audit import (
    GENESIS_HASH, AuditLogger, InMemoryAuditSink, SQLAlchemyAuditSink, WebhookAlertHook, verify_chain
)
from swellguard.auth.models import AuditFilter, SecurityEvent, Severity
from swellguard.db import Database


class FlakySink(InMemoryAuditSink):
    """In-memory sink that can be switched off."""

    def __init__(self):
        super().__init__()
        self.available = True

    async def persist(self, event):
        if not self.available:
            raise ConnectionError("sink unreachable")
        return await super().persist(event)

    async def query(self, filter, limit, offset):
        if not self.available:
            raise ConnectionError("sink unreachable")
        return await super().query(filter, limit, offset)


class SlowSink(InMemoryAuditSink):
    async def persist(self, event):
        await asyncio.sleep(1)
        return await super().persist(event)


class RefillingSink(InMemoryAuditSink):
    """Unreachable sink that lets new events arrive while a flush is retrying."""

    def __init__(self):
        super().__init__()
        self.audit = None
        self.arrivals = []

    async def persist(self, event):
        arrivals, self.arrivals = self.arrivals, []
        for action in arrivals:
            await self.audit.log_event(action, "auth", Severity.LOW)
        raise ConnectionError("sink unreachable")


class RecordingHook:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events = []

    async def notify(self, event):
        self.events.append(event)
        if self.fail:
            raise RuntimeError("pager down")


class TestAuditLogger:
    """Test cases for AuditLogger."""

    @pytest.mark.asyncio
    async def test_events_are_sealed_into_a_chain(self, audit, audit_sink):
        await audit.log_event("first", "auth", Severity.LOW, subject_id="a@x.com")
        await audit.log_event("second", "auth", Severity.MEDIUM, subject_id="a@x.com")

        first, second = audit_sink.events
        assert (first.sequence, second.sequence) == (1, 2)
        assert first.previous_hash == GENESIS_HASH
        assert second.previous_hash == first.digest
        assert verify_chain(audit_sink.events).valid

    @pytest.mark.asyncio
    async def test_tampering_is_detected(self, audit, audit_sink):
        for action in ("one", "two", "three"):
            await audit.log_event(action, "auth", Severity.LOW)

        forged = audit_sink.events[1].model_copy(update={"details": {"forged": True}})
        result = verify_chain([audit_sink.events[0], forged, audit_sink.events[2]])

        assert not result.valid
        assert result.broken_at == 2
        assert result.reason == "digest mismatch"

    @pytest.mark.asyncio
    async def test_removed_event_is_detected(self, audit, audit_sink):
        for action in ("one", "two", "three"):
            await audit.log_event(action, "auth", Severity.LOW)

        result = verify_chain([audit_sink.events[0], audit_sink.events[2]])

        assert not result.valid
        assert result.reason == "sequence gap"

    @pytest.mark.asyncio
    async def test_timestamp_comes_from_clock(self, audit, audit_sink, clock):
        await audit.log_event("stamped", "auth", Severity.LOW)

        assert audit_sink.events[0].timestamp == datetime.fromtimestamp(clock.now, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_sink_failure_never_reaches_caller(self, clock):
        sink = FlakySink()
        sink.available = False
        audit = AuditLogger(sink, clock=clock)

        await audit.log_event("admin_login_failed", "auth", Severity.MEDIUM, subject_id="a@x.com")

        assert sink.events == []
        assert [e.action for e in audit.fallback_events()] == ["admin_login_failed"]
        # The operator still sees the event while the sink is down
        events = await audit.query(AuditFilter(subject_id="a@x.com"))
        assert [e.action for e in events] == ["admin_login_failed"]

    @pytest.mark.asyncio
    async def test_slow_sink_times_out_to_buffer(self, clock):
        audit = AuditLogger(SlowSink(), sink_timeout=0.01, clock=clock)

        await audit.log_event("admin_login_success", "auth", Severity.LOW)

        assert len(audit.fallback_events()) == 1

    @pytest.mark.asyncio
    async def test_flush_fallback_after_recovery(self, clock):
        sink = FlakySink()
        sink.available = False
        audit = AuditLogger(sink, clock=clock)
        await audit.log_event("one", "auth", Severity.LOW)
        await audit.log_event("two", "auth", Severity.LOW)

        assert await audit.flush_fallback() == 0
        assert len(audit.fallback_events()) == 2

        sink.available = True
        assert await audit.flush_fallback() == 2
        assert audit.fallback_events() == []
        assert [e.sequence for e in sink.events] == [1, 2]
        assert verify_chain(sink.events).valid

    @pytest.mark.asyncio
    async def test_full_buffer_drops_oldest(self, clock):
        sink = FlakySink()
        sink.available = False
        audit = AuditLogger(sink, buffer_size=2, clock=clock)

        for action in ("one", "two", "three"):
            await audit.log_event(action, "auth", Severity.LOW)

        assert [e.action for e in audit.fallback_events()] == ["two", "three"]
        assert audit.dropped_events == 1

    @pytest.mark.asyncio
    async def test_failed_flush_counts_overflow(self, clock):
        sink = RefillingSink()
        audit = AuditLogger(sink, buffer_size=2, clock=clock)
        sink.audit = audit
        await audit.log_event("one", "auth", Severity.LOW)
        await audit.log_event("two", "auth", Severity.LOW)

        sink.arrivals = ["three", "four"]
        assert await audit.flush_fallback() == 0

        assert [e.action for e in audit.fallback_events()] == ["three", "four"]
        assert audit.dropped_events == 2

    @pytest.mark.asyncio
    async def test_critical_events_alert(self, audit_sink, clock):
        hook = RecordingHook()
        audit = AuditLogger(audit_sink, hook, clock=clock)

        await audit.log_event("routine", "auth", Severity.HIGH)
        await audit.log_event("emergency_access_used", "system", Severity.CRITICAL)

        assert [e.action for e in hook.events] == ["emergency_access_used"]

    @pytest.mark.asyncio
    async def test_alert_hook_failure_is_logged_at_high(self, audit_sink, clock):
        hook = RecordingHook(fail=True)
        audit = AuditLogger(audit_sink, hook, clock=clock)

        await audit.log_event("emergency_access_used", "system", Severity.CRITICAL)

        assert len(hook.events) == 1
        failure = audit_sink.events[-1]
        assert failure.action == "alert_hook_failed"
        assert failure.severity == Severity.HIGH
        assert failure.details["alerted_action"] == "emergency_access_used"

    @pytest.mark.asyncio
    async def test_query_is_newest_first_and_paginated(self, audit, clock):
        for index in range(5):
            await audit.log_event(f"event_{index}", "auth", Severity.LOW)
            clock.advance(1)

        page = await audit.query(limit=2, offset=1)

        assert [e.action for e in page] == ["event_3", "event_2"]

    @pytest.mark.asyncio
    async def test_query_filters(self, audit, clock):
        await audit.log_event("old", "auth", Severity.HIGH, subject_id="a@x.com")
        clock.advance(600)
        await audit.log_event("new_high", "auth", Severity.HIGH, subject_id="a@x.com")
        await audit.log_event("new_low", "auth", Severity.LOW, subject_id="a@x.com")
        await audit.log_event("other", "auth", Severity.HIGH, subject_id="b@x.com")

        since = datetime.fromtimestamp(clock.now, tz=timezone.utc) - timedelta(seconds=60)
        events = await audit.query(AuditFilter(subject_id="a@x.com", severity=Severity.HIGH, since=since))

        assert [e.action for e in events] == ["new_high"]

    @pytest.mark.asyncio
    async def test_initialize_resumes_chain(self, audit, audit_sink, clock):
        await audit.log_event("before_restart", "auth", Severity.LOW)

        restarted = AuditLogger(audit_sink, clock=clock)
        await restarted.initialize()
        await restarted.log_event("after_restart", "auth", Severity.LOW)

        assert [e.sequence for e in audit_sink.events] == [1, 2]
        assert verify_chain(audit_sink.events).valid


class TestWebhookAlertHook:
    """Test cases for the webhook alert hook."""

    @pytest.mark.asyncio
    async def test_posts_event_json(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            hook = WebhookAlertHook("https://alerts.example.com/hook", client=client)
            await hook.notify(SecurityEvent(action="emergency_access_used", resource="system", severity=Severity.CRITICAL))

        assert received[0]["action"] == "emergency_access_used"
        assert received[0]["severity"] == "critical"

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))

        async with httpx.AsyncClient(transport=transport) as client:
            hook = WebhookAlertHook("https://alerts.example.com/hook", client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await hook.notify(SecurityEvent(action="x", resource="system", severity=Severity.CRITICAL))


class TestSQLAlchemyAuditSink:
    """Test cases for the database audit sink."""

    @pytest.mark.asyncio
    async def test_persist_query_and_verify(self, clock):
        database = Database("sqlite+aiosqlite:///:memory:")
        await database.create_all()
        sink = SQLAlchemyAuditSink(database)
        audit = AuditLogger(sink, clock=clock)
        try:
            await audit.log_event("admin_login_failed", "auth", Severity.MEDIUM, subject_id="a@x.com",
                                  details={"failed_attempts": 1})
            clock.advance(1)
            await audit.log_event("admin_login_success", "auth", Severity.LOW, subject_id="a@x.com")

            events = await sink.query(AuditFilter(subject_id="a@x.com"), 10, 0)
            assert [e.action for e in events] == ["admin_login_success", "admin_login_failed"]
            assert events[1].details == {"failed_attempts": 1}

            stored = await sink.all_events()
            assert verify_chain(stored).valid
            assert (await sink.tail()).sequence == 2
        finally:
            await database.close()
