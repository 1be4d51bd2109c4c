# auth/models.py
"""
Domain types shared by the admin security components.
"""
import hashlib
import json
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# === Enums ===
class Role(str, Enum):
    """Admin-eligible roles."""
    ADMIN = "admin"
    MODERATOR = "moderator"


class Resource(str, Enum):
    """Resources guarded by the permission matrix."""
    SYSTEM = "system"
    USERS = "users"
    API_KEYS = "api_keys"
    LOGS = "logs"
    SETTINGS = "settings"
    ANALYTICS = "analytics"


class Action(str, Enum):
    """Actions a role may perform on a resource."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Severity(str, Enum):
    """Security event severity, ordered from least to most severe."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class DenialReason(str, Enum):
    """Why an authentication attempt was refused."""
    RATE_LIMITED = "rate_limited"
    LOCKED_OUT = "locked_out"
    INVALID_CREDENTIALS = "invalid_credentials"
    INSUFFICIENT_PRIVILEGES = "insufficient_privileges"
    INVALID_MFA = "invalid_mfa"
    SERVICE_UNAVAILABLE = "service_unavailable"


class AuthStatus(str, Enum):
    """Authentication outcome kinds."""
    SUCCESS = "success"
    MFA_REQUIRED = "mfa_required"
    DENIED = "denied"


# === Security events ===
class SecurityEvent(BaseModel):
    """An immutable audit record.

    ``sequence``, ``previous_hash`` and ``digest`` are empty when the event is
    built and are filled in by the audit logger when it seals the event into
    its hash chain.
    """
    model_config = ConfigDict(frozen=True)

    action: str
    resource: str
    severity: Severity
    subject_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    source_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sequence: Optional[int] = None
    previous_hash: Optional[str] = None
    digest: Optional[str] = None

    def canonical_payload(self) -> str:
        """Deterministic JSON of every field except the digest."""
        data = self.model_dump(mode="json", exclude={"digest"})
        return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)

    def compute_digest(self) -> str:
        return hashlib.sha256(self.canonical_payload().encode("utf-8")).hexdigest()


class AuditFilter(BaseModel):
    """Filter for audit queries."""
    subject_id: Optional[str] = None
    severity: Optional[Severity] = None
    action: Optional[str] = None
    since: Optional[datetime] = None

    def matches(self, event: SecurityEvent) -> bool:
        if self.subject_id is not None and event.subject_id != self.subject_id:
            return False
        if self.severity is not None and event.severity != self.severity:
            return False
        if self.action is not None and event.action != self.action:
            return False
        if self.since is not None and event.timestamp < _aware(self.since):
            return False
        return True


def _aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# === Sessions ===
@dataclass
class AdminSession:
    """A live administrative session. Owned by the SessionStore."""
    subject_id: str
    role: Role
    created_at: float
    last_activity_at: float
    timeout_seconds: float
    source_address: Optional[str] = None
    user_agent: Optional[str] = None
    mfa_verified: bool = True
    sensitive: bool = False
    session_id: str = field(default_factory=lambda: secrets.token_urlsafe(32))

    def is_valid(self, now: float) -> bool:
        """A session is valid while it has seen activity within its timeout."""
        return now - self.last_activity_at < self.timeout_seconds

    @property
    def expires_at(self) -> float:
        return self.last_activity_at + self.timeout_seconds


# === Authentication outcome ===
@dataclass(frozen=True)
class AuthOutcome:
    """Result of an authentication attempt."""
    status: AuthStatus
    session: Optional[AdminSession] = None
    reason: Optional[DenialReason] = None

    @classmethod
    def success(cls, session: AdminSession) -> "AuthOutcome":
        return cls(status=AuthStatus.SUCCESS, session=session)

    @classmethod
    def requires_mfa(cls) -> "AuthOutcome":
        return cls(status=AuthStatus.MFA_REQUIRED)

    @classmethod
    def denied(cls, reason: DenialReason) -> "AuthOutcome":
        return cls(status=AuthStatus.DENIED, reason=reason)

    @property
    def is_success(self) -> bool:
        return self.status == AuthStatus.SUCCESS

    @property
    def is_denied(self) -> bool:
        return self.status == AuthStatus.DENIED


__all__ = [
    'Role', 'Resource', 'Action', 'Severity', 'DenialReason', 'AuthStatus',
    'SecurityEvent', 'AuditFilter', 'AdminSession', 'AuthOutcome'
]
