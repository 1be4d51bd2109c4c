# auth/gateway.py
"""
Admin authentication orchestration.

Order of checks for a login: rate limit, lockout, credentials, role, MFA,
session. Each step short-circuits and every step is audited. Collaborator
faults and timeouts deny with ``service_unavailable`` and are never treated as
a pass.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from ..core import call_with_timeout
from ..core.exceptions import CollaboratorError
from ..core.security import verify_secret
from .audit import AuditLogger
from .lockout import LockoutTracker
from .models import Action, AdminSession, AuthOutcome, DenialReason, Resource, Role, Severity
from .permissions import PermissionEvaluator
from .rate_limiting import RateLimiter
from .session_management import SessionStore
from .two_factor import MfaVerifier

logger = logging.getLogger("swellguard.auth.gateway")

ADMIN_ROLES = frozenset({Role.ADMIN, Role.MODERATOR})
HIGHEST_PRIVILEGE_ROLE = Role.ADMIN


@runtime_checkable
class CredentialVerifier(Protocol):
    """Checks a primary credential against the identity provider."""

    async def verify(self, identifier: str, secret: str) -> bool:
        ...


@runtime_checkable
class RoleStore(Protocol):
    """Resolves a subject's role."""

    async def get_role(self, subject_id: str) -> Optional[str]:
        ...


def classify_admin_action(action: str) -> Severity:
    """Severity of an admin action, judged from its name."""
    name = action.lower()
    if "delete" in name or "system" in name:
        return Severity.HIGH
    if "config" in name or "key" in name:
        return Severity.MEDIUM
    return Severity.LOW


class AuthenticationGateway:
    """Entry point for admin logins, permission checks and break-glass access."""

    LOGIN_ACTION = "login"
    EMERGENCY_ACTION = "emergency_access"

    def __init__(
        self,
        *,
        credential_verifier: CredentialVerifier,
        role_store: RoleStore,
        mfa_verifier: MfaVerifier,
        audit: AuditLogger,
        rate_limiter: RateLimiter,
        lockout: LockoutTracker,
        permissions: PermissionEvaluator,
        sessions: SessionStore,
        login_rate_limit: int = 100,
        max_failures: int = 3,
        mfa_failures_count_toward_lockout: bool = True,
        credential_timeout: float = 5.0,
        mfa_timeout: float = 5.0,
        emergency_code_hash: Optional[str] = None,
        emergency_subject_id: str = "system",
        emergency_rate_limit: int = 3
    ):
        self.credential_verifier = credential_verifier
        self.role_store = role_store
        self.mfa_verifier = mfa_verifier
        self.audit = audit
        self.rate_limiter = rate_limiter
        self.lockout = lockout
        self.permissions = permissions
        self.sessions = sessions
        self.login_rate_limit = login_rate_limit
        self.max_failures = max_failures
        self.mfa_failures_count_toward_lockout = mfa_failures_count_toward_lockout
        self.credential_timeout = credential_timeout
        self.mfa_timeout = mfa_timeout
        self.emergency_code_hash = emergency_code_hash
        self.emergency_subject_id = emergency_subject_id
        self.emergency_rate_limit = emergency_rate_limit

    @staticmethod
    def normalize_subject(email: str) -> str:
        """Canonical subject id for an email; case and surrounding spaces never matter."""
        return (email or "").strip().lower()

    @classmethod
    def identifier_for(cls, email: str, source_address: Optional[str] = None) -> str:
        """Key used for rate limiting and lockout."""
        subject_id = cls.normalize_subject(email)
        if source_address:
            return f"{subject_id}:{source_address}"
        return subject_id

    async def authenticate(
        self,
        email: str,
        password: str,
        mfa_code: Optional[str] = None,
        *,
        source_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        sensitive: bool = False
    ) -> AuthOutcome:
        """Run a login attempt through every check."""
        subject_id = self.normalize_subject(email)
        identifier = self.identifier_for(subject_id, source_address)

        async def audit(action: str, severity: Severity, **details: Any) -> None:
            await self.audit.log_event(
                action,
                "auth",
                severity,
                subject_id=subject_id,
                details={"email": subject_id, **details},
                source_address=source_address,
                user_agent=user_agent,
            )

        if not await self.rate_limiter.allow(identifier, self.LOGIN_ACTION, self.login_rate_limit):
            await audit("admin_login_rate_limited", Severity.HIGH, limit=self.login_rate_limit)
            return AuthOutcome.denied(DenialReason.RATE_LIMITED)

        async with self.lockout.attempt(identifier):
            if await self.lockout.is_locked_out(identifier, self.max_failures):
                failures = await self.lockout.failure_count(identifier)
                await audit("admin_login_blocked", Severity.CRITICAL, failed_attempts=failures)
                return AuthOutcome.denied(DenialReason.LOCKED_OUT)

            try:
                valid = await call_with_timeout(
                    self.credential_verifier.verify(subject_id, password),
                    self.credential_timeout,
                    name="credential verifier",
                )
            except CollaboratorError as e:
                await audit("admin_login_error", Severity.HIGH, stage="credentials", error=str(e))
                return AuthOutcome.denied(DenialReason.SERVICE_UNAVAILABLE)

            if not valid:
                failures = await self.lockout.record_failure(identifier)
                await audit("admin_login_failed", Severity.MEDIUM, failed_attempts=failures)
                return AuthOutcome.denied(DenialReason.INVALID_CREDENTIALS)

            try:
                raw_role = await call_with_timeout(
                    self.role_store.get_role(subject_id),
                    self.credential_timeout,
                    name="role store",
                )
            except CollaboratorError as e:
                await audit("admin_login_error", Severity.HIGH, stage="role", error=str(e))
                return AuthOutcome.denied(DenialReason.SERVICE_UNAVAILABLE)

            role = self._coerce_role(raw_role)
            if role is None:
                await audit("admin_access_denied", Severity.HIGH, role=_role_name(raw_role))
                return AuthOutcome.denied(DenialReason.INSUFFICIENT_PRIVILEGES)

            if not mfa_code:
                await audit("admin_mfa_challenge", Severity.LOW, role=role.value)
                return AuthOutcome.requires_mfa()

            try:
                mfa_valid = await call_with_timeout(
                    self.mfa_verifier.verify(subject_id, mfa_code),
                    self.mfa_timeout,
                    name="MFA verifier",
                )
            except CollaboratorError as e:
                await audit("admin_login_error", Severity.HIGH, stage="mfa", error=str(e))
                return AuthOutcome.denied(DenialReason.SERVICE_UNAVAILABLE)

            if not mfa_valid:
                details: Dict[str, Any] = {}
                if self.mfa_failures_count_toward_lockout:
                    details["failed_attempts"] = await self.lockout.record_failure(identifier)
                await audit("admin_mfa_failed", Severity.HIGH, **details)
                return AuthOutcome.denied(DenialReason.INVALID_MFA)

            await self.lockout.reset(identifier)
            session = await self.sessions.create(
                subject_id,
                role,
                source_address,
                user_agent=user_agent,
                mfa_verified=True,
                sensitive=sensitive,
            )
        await audit("admin_login_success", Severity.LOW, role=role.value)
        return AuthOutcome.success(session)

    async def authorize(
        self,
        subject_id: str,
        resource: Union[Resource, str],
        action: Union[Action, str],
        *,
        source_address: Optional[str] = None
    ) -> bool:
        """Check a live session's role against the permission matrix. Audited either way."""
        resource_name = getattr(resource, "value", resource)
        action_name = getattr(action, "value", action)
        session = await self.sessions.get(subject_id)
        if session is None:
            await self.audit.log_event(
                "admin_access_denied",
                resource_name,
                Severity.MEDIUM,
                subject_id=subject_id,
                details={"action": action_name, "reason": "no_active_session"},
                source_address=source_address,
            )
            return False

        allowed = self.permissions.has_permission(session.role, resource, action)
        await self.audit.log_event(
            "admin_access_granted" if allowed else "admin_access_denied",
            resource_name,
            Severity.LOW if allowed else Severity.MEDIUM,
            subject_id=subject_id,
            details={"action": action_name, "role": session.role.value},
            source_address=source_address or session.source_address,
        )
        return allowed

    async def touch(self, subject_id: str) -> bool:
        return await self.sessions.touch(subject_id)

    async def logout(self, subject_id: str) -> None:
        await self.sessions.invalidate(subject_id, reason="logout")

    async def log_admin_action(
        self,
        subject_id: str,
        action: str,
        resource: str,
        details: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Audit an action taken by an admin. Returns False if the subject has no live session."""
        if not await self.sessions.touch(subject_id):
            return False
        session = await self.sessions.get(subject_id)
        if session is None:
            return False

        await self.audit.log_event(
            f"admin_{action}",
            resource,
            classify_admin_action(action),
            subject_id=subject_id,
            details={**(details or {}), "role": session.role.value, "ip": session.source_address},
            source_address=session.source_address,
            user_agent=session.user_agent,
        )
        return True

    async def unlock(self, identifier: str, *, performed_by: Optional[str] = None) -> None:
        """Clear a lockout counter on an administrator's request."""
        previous = await self.lockout.failure_count(identifier)
        await self.lockout.reset(identifier)
        await self.audit.log_event(
            "lockout_reset",
            "auth",
            Severity.MEDIUM,
            subject_id=performed_by,
            details={"identifier": identifier, "previous_failures": previous},
        )

    async def emergency_session(
        self,
        code: str,
        *,
        source_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Optional[AdminSession]:
        """Break-glass login. Every call emits exactly one critical event."""
        reason = None
        # Only attributable attempts are throttled; callers without an address never share a bucket
        if source_address and not await self.rate_limiter.allow(
            source_address, self.EMERGENCY_ACTION, self.emergency_rate_limit
        ):
            reason = "rate_limited"
        elif not self.emergency_code_hash:
            reason = "not_configured"
        elif not await asyncio.to_thread(verify_secret, code, self.emergency_code_hash):
            reason = "invalid_code"

        if reason is not None:
            await self.audit.log_event(
                "emergency_access_denied",
                "system",
                Severity.CRITICAL,
                subject_id=self.emergency_subject_id,
                details={"reason": reason},
                source_address=source_address,
                user_agent=user_agent,
            )
            return None

        session = await self.sessions.create(
            self.emergency_subject_id,
            HIGHEST_PRIVILEGE_ROLE,
            source_address,
            user_agent=user_agent,
            mfa_verified=False,
            sensitive=True,
        )
        await self.audit.log_event(
            "emergency_access_used",
            "system",
            Severity.CRITICAL,
            subject_id=self.emergency_subject_id,
            details={"granted_role": HIGHEST_PRIVILEGE_ROLE.value, "timeout_seconds": session.timeout_seconds},
            source_address=source_address,
            user_agent=user_agent,
        )
        return session

    async def emergency_access(
        self,
        code: str,
        *,
        source_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> bool:
        session = await self.emergency_session(code, source_address=source_address, user_agent=user_agent)
        return session is not None

    @staticmethod
    def _coerce_role(raw_role: Any) -> Optional[Role]:
        if raw_role is None:
            return None
        try:
            role = Role(raw_role)
        except ValueError:
            return None
        return role if role in ADMIN_ROLES else None


def _role_name(raw_role: Any) -> Optional[str]:
    if raw_role is None:
        return None
    return str(getattr(raw_role, "value", raw_role))


__all__ = [
    'AuthenticationGateway', 'CredentialVerifier', 'RoleStore',
    'ADMIN_ROLES', 'HIGHEST_PRIVILEGE_ROLE', 'classify_admin_action'
]
