"""
Request and response models for the admin security endpoints.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from ..auth.models import Action, AdminSession, Resource, Role, SecurityEvent, Severity


class LoginRequest(BaseModel):
    """Admin login. Send ``mfa_code`` on the second step."""
    email: EmailStr
    password: str = Field(..., min_length=1)
    mfa_code: Optional[str] = Field(None, min_length=1, max_length=64)
    sensitive: bool = False


class EmergencyRequest(BaseModel):
    code: str = Field(..., min_length=1)


class AdminActionRequest(BaseModel):
    """An action taken by the calling admin, recorded in the audit log."""
    action: str = Field(..., min_length=1, max_length=100)
    resource: str = Field(..., min_length=1, max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict)


class LockoutResetRequest(BaseModel):
    email: EmailStr
    source_address: Optional[str] = None


def _to_datetime(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


class SessionResponse(BaseModel):
    """The caller's session, without its secret id."""
    subject_id: str
    role: Role
    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime
    mfa_verified: bool
    sensitive: bool
    source_address: Optional[str] = None

    @classmethod
    def from_session(cls, session: AdminSession) -> "SessionResponse":
        return cls(
            subject_id=session.subject_id,
            role=session.role,
            created_at=_to_datetime(session.created_at),
            last_activity_at=_to_datetime(session.last_activity_at),
            expires_at=_to_datetime(session.expires_at),
            mfa_verified=session.mfa_verified,
            sensitive=session.sensitive,
            source_address=session.source_address,
        )


class TokenResponse(BaseModel):
    """Bearer token bound to a freshly created session."""
    access_token: str
    token_type: str = "bearer"
    session: SessionResponse


class ChallengeResponse(BaseModel):
    status: str = "mfa_required"
    detail: str = "Multi-factor code required"


class PermissionsResponse(BaseModel):
    role: Role
    permissions: Dict[Resource, List[Action]]


class PermissionCheckResponse(BaseModel):
    resource: Resource
    action: Action
    allowed: bool


class AdminActionResponse(BaseModel):
    action: str
    resource: str
    severity: Severity


class LockoutResetResponse(BaseModel):
    identifier: str
    reset: bool = True


class AuditPage(BaseModel):
    """A page of audit events, newest first."""
    items: List[SecurityEvent]
    limit: int
    offset: int
