# auth/__init__.py
"""
Administrative authentication and session security for SwellGuard.

Provides multi-factor admin login, session lifecycle, fixed-window rate
limiting, lockout tracking, role-based permission checks and tamper-evident
audit logging.
"""
from .models import (
    Role, Resource, Action, Severity, DenialReason, AuthStatus,
    SecurityEvent, AuditFilter, AdminSession, AuthOutcome
)
from .audit import (
    AuditSink, AlertHook, InMemoryAuditSink, SQLAlchemyAuditSink, SecurityEventRecord,
    LoggingAlertHook, WebhookAlertHook, AuditLogger, ChainVerification, verify_chain
)
from .rate_limiting import RateLimiter, RateLimitRecord
from .lockout import LockoutTracker
from .permissions import (
    PermissionEvaluator, DEFAULT_ROLE_PERMISSIONS, build_permission_matrix, load_permission_matrix
)
from .session_management import SessionStore
from .two_factor import MfaVerifier, TotpMfaVerifier, TwoFactorService
from .gateway import AuthenticationGateway, CredentialVerifier, RoleStore, classify_admin_action

__all__ = [
    'Role', 'Resource', 'Action', 'Severity', 'DenialReason', 'AuthStatus',
    'SecurityEvent', 'AuditFilter', 'AdminSession', 'AuthOutcome',
    'AuditSink', 'AlertHook', 'InMemoryAuditSink', 'SQLAlchemyAuditSink', 'SecurityEventRecord',
    'LoggingAlertHook', 'WebhookAlertHook', 'AuditLogger', 'ChainVerification', 'verify_chain',
    'RateLimiter', 'RateLimitRecord', 'LockoutTracker',
    'PermissionEvaluator', 'DEFAULT_ROLE_PERMISSIONS', 'build_permission_matrix', 'load_permission_matrix',
    'SessionStore', 'MfaVerifier', 'TotpMfaVerifier', 'TwoFactorService',
    'AuthenticationGateway', 'CredentialVerifier', 'RoleStore', 'classify_admin_action'
]
