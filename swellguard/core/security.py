"""
Security utilities: secret hashing and signed session tokens.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .exceptions import SessionTokenError

# pbkdf2_sha256 is implemented by passlib itself and needs no native backend
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SESSION_TOKEN_TYPE = "admin_session"


def hash_secret(secret: str) -> str:
    """Hash a password or break-glass code."""
    return pwd_context.hash(secret)


def verify_secret(plain_secret: str, hashed_secret: Optional[str]) -> bool:
    """Verify a secret against a stored hash. A missing or malformed hash never verifies."""
    if not hashed_secret or plain_secret is None:
        return False
    try:
        return pwd_context.verify(plain_secret, hashed_secret)
    except (ValueError, TypeError):
        return False


def create_session_token(
    subject_id: str,
    session_id: str,
    role: str,
    *,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed bearer token bound to one admin session."""
    to_encode: Dict[str, Any] = {
        "sub": subject_id,
        "sid": session_id,
        "role": role,
        "type": SESSION_TOKEN_TYPE,
    }
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_session_token(token: str, *, secret_key: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """Decode and validate a bearer session token."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        raise SessionTokenError("Invalid or expired session token", original_exception=e)

    if payload.get("type") != SESSION_TOKEN_TYPE:
        raise SessionTokenError("Invalid token type", context={"type": payload.get("type")})
    if not payload.get("sub") or not payload.get("sid"):
        raise SessionTokenError("Session token is missing its subject or session id")
    return payload
