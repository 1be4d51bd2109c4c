"""
Authentication routes: login, session upkeep and break-glass access.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ..auth.models import AdminSession, AuthStatus, DenialReason
from ..context import SecurityContext
from ..schemas.auth import (
    ChallengeResponse, EmergencyRequest, LoginRequest, SessionResponse, TokenResponse
)
from .dependencies import (
    ClientInfo, get_client_info, get_context, get_current_session, issue_session_token
)

router = APIRouter(prefix="/auth", tags=["auth"])

DENIAL_STATUS = {
    DenialReason.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    DenialReason.LOCKED_OUT: status.HTTP_403_FORBIDDEN,
    DenialReason.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    DenialReason.INSUFFICIENT_PRIVILEGES: status.HTTP_403_FORBIDDEN,
    DenialReason.INVALID_MFA: status.HTTP_401_UNAUTHORIZED,
    DenialReason.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

DENIAL_DETAIL = {
    DenialReason.RATE_LIMITED: "Too many login attempts",
    DenialReason.LOCKED_OUT: "Account locked after repeated failures",
    DenialReason.INVALID_CREDENTIALS: "Incorrect email or password",
    DenialReason.INSUFFICIENT_PRIVILEGES: "Admin privileges required",
    DenialReason.INVALID_MFA: "Invalid multi-factor code",
    DenialReason.SERVICE_UNAVAILABLE: "Authentication service unavailable",
}

# Denials that are collapsed into one response when uniform messages are on
CREDENTIAL_DENIALS = frozenset({
    DenialReason.LOCKED_OUT,
    DenialReason.INVALID_CREDENTIALS,
    DenialReason.INSUFFICIENT_PRIVILEGES,
    DenialReason.INVALID_MFA,
})

UNIFORM_DETAIL = "Authentication failed"


def denial_exception(
    reason: DenialReason,
    *,
    uniform: bool = False,
    retry_after: Optional[int] = None
) -> HTTPException:
    """Map a gateway denial to the HTTP error the client sees."""
    headers: Dict[str, str] = {}
    if uniform and reason in CREDENTIAL_DENIALS:
        status_code = status.HTTP_401_UNAUTHORIZED
        detail = UNIFORM_DETAIL
    else:
        status_code = DENIAL_STATUS[reason]
        detail = DENIAL_DETAIL[reason]

    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    if reason == DenialReason.RATE_LIMITED and retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return HTTPException(status_code=status_code, detail=detail, headers=headers or None)


def _token_response(context: SecurityContext, session: AdminSession) -> TokenResponse:
    return TokenResponse(
        access_token=issue_session_token(context, session),
        session=SessionResponse.from_session(session),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={status.HTTP_202_ACCEPTED: {"model": ChallengeResponse}},
    summary="Admin login",
    response_description="Bearer token for the new admin session"
)
async def login(
    body: LoginRequest,
    client: ClientInfo = Depends(get_client_info),
    context: SecurityContext = Depends(get_context)
) -> Any:
    """
    Two-step admin login.

    - without **mfa_code**: checks the password and answers 202 with an MFA challenge
    - with **mfa_code**: checks both and returns a bearer token
    """
    email = str(body.email)
    outcome = await context.gateway.authenticate(
        email,
        body.password,
        body.mfa_code,
        source_address=client.source_address,
        user_agent=client.user_agent,
        sensitive=body.sensitive,
    )

    if outcome.status == AuthStatus.MFA_REQUIRED:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=ChallengeResponse().model_dump(),
        )

    if outcome.is_denied:
        retry_after = None
        if outcome.reason == DenialReason.RATE_LIMITED:
            retry_after = await context.rate_limiter.retry_after(
                context.gateway.identifier_for(email, client.source_address),
                context.gateway.LOGIN_ACTION,
            )
        raise denial_exception(
            outcome.reason,
            uniform=context.settings.UNIFORM_DENIAL_MESSAGES,
            retry_after=retry_after,
        )

    return _token_response(context, outcome.session)


@router.post("/logout", summary="End the caller's session")
async def logout(
    session: AdminSession = Depends(get_current_session),
    context: SecurityContext = Depends(get_context)
) -> Dict[str, str]:
    await context.gateway.logout(session.subject_id)
    return {"detail": "Logged out"}


@router.post("/session/touch", response_model=SessionResponse, summary="Extend the caller's session")
async def touch_session(session: AdminSession = Depends(get_current_session)) -> Any:
    # Resolving the session already counted as activity
    return SessionResponse.from_session(session)


@router.get("/session", response_model=SessionResponse, summary="Describe the caller's session")
async def read_session(session: AdminSession = Depends(get_current_session)) -> Any:
    return SessionResponse.from_session(session)


@router.post(
    "/emergency",
    response_model=TokenResponse,
    summary="Break-glass access",
    response_description="Bearer token for a short-lived highest-privilege session"
)
async def emergency_access(
    body: EmergencyRequest,
    client: ClientInfo = Depends(get_client_info),
    context: SecurityContext = Depends(get_context)
) -> Any:
    """
    Exchange the out-of-band emergency code for an admin session.

    Every call is audited at critical severity, whether or not it succeeds.
    """
    session = await context.gateway.emergency_session(
        body.code,
        source_address=client.source_address,
        user_agent=client.user_agent,
    )
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Emergency access denied",
        )
    return _token_response(context, session)
