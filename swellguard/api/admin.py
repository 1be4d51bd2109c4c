"""
Admin routes: permissions, audit trail, action recording and lockout resets.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth.gateway import classify_admin_action
from ..auth.models import Action, AdminSession, AuditFilter, Resource, Severity
from ..context import SecurityContext
from ..schemas.auth import (
    AdminActionRequest, AdminActionResponse, AuditPage, LockoutResetRequest,
    LockoutResetResponse, PermissionCheckResponse, PermissionsResponse
)
from .dependencies import (
    ClientInfo, get_client_info, get_context, get_current_session, require_permission
)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/permissions", response_model=PermissionsResponse)
async def read_permissions(
    session: AdminSession = Depends(get_current_session),
    context: SecurityContext = Depends(get_context)
) -> Any:
    """Everything the caller's role may do."""
    granted = context.permissions.permissions_for(session.role)
    return PermissionsResponse(
        role=session.role,
        permissions={
            resource: sorted(actions, key=lambda a: a.value)
            for resource, actions in granted.items()
        },
    )


@router.get("/permissions/check", response_model=PermissionCheckResponse)
async def check_permission(
    resource: Resource,
    action: Action,
    session: AdminSession = Depends(get_current_session),
    client: ClientInfo = Depends(get_client_info),
    context: SecurityContext = Depends(get_context)
) -> Any:
    allowed = await context.gateway.authorize(
        session.subject_id,
        resource,
        action,
        source_address=client.source_address,
    )
    return PermissionCheckResponse(resource=resource, action=action, allowed=allowed)


@router.get("/audit", response_model=AuditPage)
async def read_audit_log(
    subject_id: Optional[str] = None,
    severity: Optional[Severity] = None,
    action: Optional[str] = None,
    since: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AdminSession = Depends(require_permission(Resource.LOGS, Action.READ)),
    context: SecurityContext = Depends(get_context)
) -> Any:
    """
    Query security events, newest first.

    Requires **logs:read**. Events the durable sink has not accepted yet are
    included.
    """
    events = await context.audit.query(
        AuditFilter(subject_id=subject_id, severity=severity, action=action, since=since),
        limit=limit,
        offset=offset,
    )
    return AuditPage(items=events, limit=limit, offset=offset)


@router.post("/actions", response_model=AdminActionResponse, status_code=status.HTTP_201_CREATED)
async def record_admin_action(
    body: AdminActionRequest,
    session: AdminSession = Depends(get_current_session),
    context: SecurityContext = Depends(get_context)
) -> Any:
    recorded = await context.gateway.log_admin_action(
        session.subject_id,
        body.action,
        body.resource,
        body.details,
    )
    if not recorded:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session is no longer active",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AdminActionResponse(
        action=body.action,
        resource=body.resource,
        severity=classify_admin_action(body.action),
    )


@router.post("/lockouts/reset", response_model=LockoutResetResponse)
async def reset_lockout(
    body: LockoutResetRequest,
    session: AdminSession = Depends(require_permission(Resource.USERS, Action.UPDATE)),
    context: SecurityContext = Depends(get_context)
) -> Any:
    """Clear the failure counter for an email, optionally scoped to one source address. Requires **users:update**."""
    identifier = context.gateway.identifier_for(str(body.email), body.source_address)
    await context.gateway.unlock(identifier, performed_by=session.subject_id)
    return LockoutResetResponse(identifier=identifier)
