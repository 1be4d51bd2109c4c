"""
FastAPI dependencies for the admin endpoints.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..auth.models import Action, AdminSession, Resource
from ..context import SecurityContext
from ..core.exceptions import SessionTokenError
from ..core.security import create_session_token, decode_session_token

bearer_scheme = HTTPBearer(auto_error=False)

# Absolute cap on a token; inactivity is enforced by the session store
MAX_TOKEN_LIFETIME = timedelta(hours=12)


@dataclass
class ClientInfo:
    source_address: Optional[str]
    user_agent: Optional[str]


def get_context(request: Request) -> SecurityContext:
    return request.app.state.security


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        source_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def issue_session_token(context: SecurityContext, session: AdminSession) -> str:
    return create_session_token(
        session.subject_id,
        session.session_id,
        session.role.value,
        secret_key=context.settings.SECRET_KEY,
        algorithm=context.settings.TOKEN_ALGORITHM,
        expires_delta=MAX_TOKEN_LIFETIME,
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    context: SecurityContext = Depends(get_context)
) -> AdminSession:
    """
    Resolve the caller's live session from a bearer token.

    The token must name the session currently held by its subject, and the
    session must still be active; using it counts as activity.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_session_token(
            credentials.credentials,
            secret_key=context.settings.SECRET_KEY,
            algorithm=context.settings.TOKEN_ALGORITHM,
        )
    except SessionTokenError:
        raise _unauthorized("Could not validate credentials")

    session = await context.sessions.get(payload["sub"])
    if session is None or session.session_id != payload["sid"]:
        raise _unauthorized("Session is no longer active")
    if not await context.gateway.touch(session.subject_id):
        raise _unauthorized("Session is no longer active")

    return await context.sessions.get(session.subject_id) or session


def require_permission(resource: Resource, action: Action):
    """Dependency factory that admits only sessions whose role grants ``action`` on ``resource``."""

    async def permission_checker(
        session: AdminSession = Depends(get_current_session),
        client: ClientInfo = Depends(get_client_info),
        context: SecurityContext = Depends(get_context)
    ) -> AdminSession:
        allowed = await context.gateway.authorize(
            session.subject_id,
            resource,
            action,
            source_address=client.source_address,
        )
        if not allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient privileges",
            )
        return session

    return permission_checker


__all__ = [
    'ClientInfo', 'get_context', 'get_client_info', 'get_current_session',
    'require_permission', 'issue_session_token', 'bearer_scheme', 'MAX_TOKEN_LIFETIME'
]
