from .auth import (
    LoginRequest, EmergencyRequest, AdminActionRequest, LockoutResetRequest,
    SessionResponse, TokenResponse, ChallengeResponse, PermissionsResponse,
    PermissionCheckResponse, AdminActionResponse, LockoutResetResponse, AuditPage
)

__all__ = [
    'LoginRequest', 'EmergencyRequest', 'AdminActionRequest', 'LockoutResetRequest',
    'SessionResponse', 'TokenResponse', 'ChallengeResponse', 'PermissionsResponse',
    'PermissionCheckResponse', 'AdminActionResponse', 'LockoutResetResponse', 'AuditPage'
]
