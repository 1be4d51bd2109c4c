"""
Unit tests for admin session lifecycle.
"""
import pytest

from swellguard.auth.models import AuditFilter, Role, Severity
from swellguard.auth.session_management import SessionStore

TIMEOUT = 3600


@pytest.fixture
def sessions(audit, clock):
    return SessionStore(audit, timeout_seconds=TIMEOUT, sensitive_timeout_seconds=1800, clock=clock)


class TestSessionStore:
    """Test cases for SessionStore."""

    @pytest.mark.asyncio
    async def test_new_session_is_valid(self, sessions):
        await sessions.create("a@x.com", Role.ADMIN, "10.0.0.1")

        assert await sessions.is_valid("a@x.com")

    @pytest.mark.asyncio
    async def test_idle_session_expires(self, sessions, clock):
        await sessions.create("a@x.com", Role.ADMIN)

        clock.advance(TIMEOUT + 1)

        assert not await sessions.is_valid("a@x.com")
        assert not await sessions.touch("a@x.com")

    @pytest.mark.asyncio
    async def test_touch_extends_validity(self, sessions, clock):
        await sessions.create("a@x.com", Role.ADMIN)

        clock.advance(0.9 * TIMEOUT)
        assert await sessions.touch("a@x.com")
        clock.advance(0.6 * TIMEOUT)

        assert await sessions.is_valid("a@x.com")

    @pytest.mark.asyncio
    async def test_sensitive_sessions_use_shorter_timeout(self, sessions, clock):
        session = await sessions.create("a@x.com", Role.ADMIN, sensitive=True)
        assert session.timeout_seconds == 1800

        clock.advance(1801)

        assert not await sessions.is_valid("a@x.com")

    @pytest.mark.asyncio
    async def test_new_login_replaces_session(self, sessions):
        first = await sessions.create("a@x.com", Role.ADMIN)
        second = await sessions.create("a@x.com", Role.ADMIN)

        current = await sessions.get("a@x.com")
        assert current.session_id == second.session_id != first.session_id
        assert len(await sessions.active_sessions()) == 1

    @pytest.mark.asyncio
    async def test_create_emits_low_event(self, sessions, audit):
        await sessions.create("a@x.com", Role.MODERATOR, "10.0.0.1")

        events = await audit.query(AuditFilter(action="session_created"))
        assert events[0].severity == Severity.LOW
        assert events[0].details["role"] == "moderator"

    @pytest.mark.asyncio
    async def test_returned_session_is_a_copy(self, sessions, clock):
        session = await sessions.create("a@x.com", Role.ADMIN)
        session.last_activity_at = clock.now + 10 * TIMEOUT

        clock.advance(TIMEOUT + 1)

        assert not await sessions.is_valid("a@x.com")

    @pytest.mark.asyncio
    async def test_invalidate(self, sessions, audit):
        await sessions.create("a@x.com", Role.ADMIN)

        await sessions.invalidate("a@x.com")

        assert await sessions.get("a@x.com") is None
        assert not await sessions.touch("a@x.com")
        events = await audit.query(AuditFilter(action="session_invalidated"))
        assert events[0].details == {"reason": "logout", "had_session": True}

    @pytest.mark.asyncio
    async def test_sweep_evicts_and_audits_expired(self, sessions, audit, clock):
        await sessions.create("old@x.com", Role.ADMIN)
        clock.advance(TIMEOUT - 10)
        await sessions.create("new@x.com", Role.MODERATOR)
        clock.advance(20)

        assert await sessions.sweep_expired() == 1

        assert [s.subject_id for s in await sessions.active_sessions()] == ["new@x.com"]
        expired = await audit.query(AuditFilter(action="session_expired"))
        assert len(expired) == 1
        assert expired[0].subject_id == "old@x.com"
        assert expired[0].severity == Severity.LOW
