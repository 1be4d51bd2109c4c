# swellguard/context.py
"""
Wiring of the security components from settings.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .core.config import Settings, get_settings
from .db import Database
from .services.identity import InMemoryIdentityProvider
from .tasks.sweeper import SecuritySweeper
from .auth.audit import (
    AlertHook, AuditLogger, AuditSink, InMemoryAuditSink, LoggingAlertHook,
    SQLAlchemyAuditSink, WebhookAlertHook
)
from .auth.gateway import AuthenticationGateway, CredentialVerifier, RoleStore
from .auth.lockout import LockoutTracker
from .auth.permissions import PermissionEvaluator, PermissionMatrix, load_permission_matrix
from .auth.rate_limiting import RateLimiter
from .auth.session_management import SessionStore
from .auth.two_factor import MfaVerifier, TotpMfaVerifier

logger = logging.getLogger("swellguard")


@dataclass
class SecurityContext:
    """All security components of one process."""
    settings: Settings
    audit: AuditLogger
    rate_limiter: RateLimiter
    lockout: LockoutTracker
    permissions: PermissionEvaluator
    sessions: SessionStore
    gateway: AuthenticationGateway
    sweeper: SecuritySweeper
    database: Optional[Database] = None

    async def startup(self) -> None:
        if self.database is not None:
            await self.database.create_all()
        await self.audit.initialize()
        self.sweeper.start()

    async def shutdown(self) -> None:
        await self.sweeper.stop()
        await self.audit.flush_fallback()
        if self.database is not None:
            await self.database.close()


def build_security_context(
    settings: Optional[Settings] = None,
    *,
    credential_verifier: Optional[CredentialVerifier] = None,
    role_store: Optional[RoleStore] = None,
    mfa_verifier: Optional[MfaVerifier] = None,
    audit_sink: Optional[AuditSink] = None,
    alert_hook: Optional[AlertHook] = None,
    permission_matrix: Optional[PermissionMatrix] = None,
    clock: Callable[[], float] = time.time
) -> SecurityContext:
    """Build the security components. Configuration faults raise here, at startup."""
    settings = settings or get_settings()

    database = None
    if audit_sink is None:
        if settings.AUDIT_SINK == "database":
            database = Database(settings.DATABASE_URL, echo_sql=settings.ECHO_SQL)
            audit_sink = SQLAlchemyAuditSink(database)
        else:
            audit_sink = InMemoryAuditSink()

    if alert_hook is None:
        if settings.ALERT_WEBHOOK_URL:
            alert_hook = WebhookAlertHook(settings.ALERT_WEBHOOK_URL, timeout=settings.ALERT_TIMEOUT_SECONDS)
        else:
            alert_hook = LoggingAlertHook()

    if credential_verifier is None or role_store is None or mfa_verifier is None:
        if settings.IDENTITY_FILE:
            identity = InMemoryIdentityProvider.from_file(settings.IDENTITY_FILE)
        else:
            logger.warning("No identity file configured; only injected collaborators can authenticate admins")
            identity = InMemoryIdentityProvider()
        credential_verifier = credential_verifier or identity
        role_store = role_store or identity
        mfa_verifier = mfa_verifier or TotpMfaVerifier(identity)

    if permission_matrix is None and settings.PERMISSION_MATRIX_FILE:
        permission_matrix = load_permission_matrix(settings.PERMISSION_MATRIX_FILE)
    permissions = PermissionEvaluator(permission_matrix)

    if not settings.EMERGENCY_ACCESS_CODE_HASH:
        logger.info("No emergency access code configured; break-glass access is disabled")

    audit = AuditLogger(
        audit_sink,
        alert_hook,
        sink_timeout=settings.AUDIT_SINK_TIMEOUT_SECONDS,
        alert_timeout=settings.ALERT_TIMEOUT_SECONDS,
        buffer_size=settings.AUDIT_BUFFER_SIZE,
        clock=clock,
    )
    rate_limiter = RateLimiter(settings.RATE_LIMIT_WINDOW_SECONDS, audit=audit, clock=clock)
    lockout = LockoutTracker(settings.MAX_FAILED_ATTEMPTS)
    sessions = SessionStore(
        audit,
        timeout_seconds=settings.SESSION_TIMEOUT_SECONDS,
        sensitive_timeout_seconds=settings.SENSITIVE_SESSION_TIMEOUT_SECONDS,
        clock=clock,
    )
    gateway = AuthenticationGateway(
        credential_verifier=credential_verifier,
        role_store=role_store,
        mfa_verifier=mfa_verifier,
        audit=audit,
        rate_limiter=rate_limiter,
        lockout=lockout,
        permissions=permissions,
        sessions=sessions,
        login_rate_limit=settings.LOGIN_RATE_LIMIT,
        max_failures=settings.MAX_FAILED_ATTEMPTS,
        mfa_failures_count_toward_lockout=settings.MFA_FAILURES_COUNT_TOWARD_LOCKOUT,
        credential_timeout=settings.CREDENTIAL_TIMEOUT_SECONDS,
        mfa_timeout=settings.MFA_TIMEOUT_SECONDS,
        emergency_code_hash=settings.EMERGENCY_ACCESS_CODE_HASH,
        emergency_subject_id=settings.EMERGENCY_SUBJECT_ID,
        emergency_rate_limit=settings.EMERGENCY_RATE_LIMIT,
    )
    sweeper = SecuritySweeper(sessions, rate_limiter, audit, interval_seconds=settings.SWEEP_INTERVAL_SECONDS)

    return SecurityContext(
        settings=settings,
        audit=audit,
        rate_limiter=rate_limiter,
        lockout=lockout,
        permissions=permissions,
        sessions=sessions,
        gateway=gateway,
        sweeper=sweeper,
        database=database,
    )


__all__ = ['SecurityContext', 'build_security_context']
