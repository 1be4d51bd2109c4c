"""
Pytest configuration and fixtures for SwellGuard tests.
"""
from typing import Generator

import pyotp
import pytest
from fastapi.testclient import TestClient

from swellguard import create_app
from swellguard.auth.audit import AuditLogger, InMemoryAuditSink
from swellguard.auth.two_factor import TotpMfaVerifier
from swellguard.context import SecurityContext, build_security_context
from swellguard.core.config import Settings
from swellguard.core.security import hash_secret
from swellguard.services.identity import InMemoryIdentityProvider

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse-battery"
MODERATOR_EMAIL = "mod@example.com"
MODERATOR_PASSWORD = "moderator-pass-123"
USER_EMAIL = "user@example.com"
USER_PASSWORD = "plain-user-pass-123"
BACKUP_CODE = "BACKUP01"
EMERGENCY_CODE = "break-glass-0001"


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def audit(audit_sink: InMemoryAuditSink, clock: FakeClock) -> AuditLogger:
    return AuditLogger(audit_sink, clock=clock)


@pytest.fixture
def totp_secret() -> str:
    return pyotp.random_base32()


@pytest.fixture
def identity(totp_secret: str) -> InMemoryIdentityProvider:
    """Identity provider with one admin, one moderator and one non-admin account."""
    provider = InMemoryIdentityProvider()
    provider.add_user(ADMIN_EMAIL, ADMIN_PASSWORD, role="admin", totp_secret=totp_secret, backup_codes=[BACKUP_CODE])
    provider.add_user(MODERATOR_EMAIL, MODERATOR_PASSWORD, role="moderator", totp_secret=totp_secret)
    provider.add_user(USER_EMAIL, USER_PASSWORD, role="user", totp_secret=totp_secret)
    return provider


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SECRET_KEY="test-secret-key-not-for-production",
        EMERGENCY_ACCESS_CODE_HASH=hash_secret(EMERGENCY_CODE),
        SWEEP_INTERVAL_SECONDS=3600,
    )


@pytest.fixture
def context(
    settings: Settings,
    identity: InMemoryIdentityProvider,
    audit_sink: InMemoryAuditSink,
    clock: FakeClock
) -> SecurityContext:
    """Security components wired to the test identity provider and a fake clock."""
    return build_security_context(
        settings,
        credential_verifier=identity,
        role_store=identity,
        mfa_verifier=TotpMfaVerifier(identity),
        audit_sink=audit_sink,
        clock=clock,
    )


@pytest.fixture
def gateway(context: SecurityContext):
    return context.gateway


@pytest.fixture
def app(context: SecurityContext):
    """Create a test application around the test security context."""
    return create_app(context=context)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client that runs the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client


def current_totp(secret: str) -> str:
    return pyotp.TOTP(secret).now()
