"""
Configuration settings for SwellGuard.
"""
import secrets
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized settings for the admin security service.
    Every setting can be overridden with a ``SWELLGUARD_`` prefixed environment variable.
    """
    # --- Application ---
    APP_NAME: str = "SwellGuard Admin Security"
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Server ---
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # --- Session tokens ---
    SECRET_KEY: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Key used to sign admin session tokens",
    )
    TOKEN_ALGORITHM: str = "HS256"

    # --- Sessions ---
    SESSION_TIMEOUT_SECONDS: int = 60 * 60
    SENSITIVE_SESSION_TIMEOUT_SECONDS: int = 30 * 60

    # --- Rate limiting & lockout ---
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    LOGIN_RATE_LIMIT: int = 100
    MAX_FAILED_ATTEMPTS: int = 3
    MFA_FAILURES_COUNT_TOWARD_LOCKOUT: bool = True

    # --- Collaborator timeouts ---
    CREDENTIAL_TIMEOUT_SECONDS: float = 5.0
    MFA_TIMEOUT_SECONDS: float = 5.0

    # --- Audit ---
    AUDIT_SINK: str = "memory"  # Options: memory, database
    DATABASE_URL: str = "sqlite+aiosqlite:///./swellguard.db"
    ECHO_SQL: bool = False
    AUDIT_SINK_TIMEOUT_SECONDS: float = 2.0
    AUDIT_BUFFER_SIZE: int = 1000
    ALERT_WEBHOOK_URL: Optional[str] = None
    ALERT_TIMEOUT_SECONDS: float = 2.0

    # --- Break-glass ---
    EMERGENCY_ACCESS_CODE_HASH: Optional[str] = None
    EMERGENCY_SUBJECT_ID: str = "system"
    EMERGENCY_RATE_LIMIT: int = 3

    # --- Background sweep ---
    SWEEP_INTERVAL_SECONDS: float = 300.0

    # --- External data ---
    IDENTITY_FILE: Optional[str] = None
    PERMISSION_MATRIX_FILE: Optional[str] = None

    # --- Hardening ---
    UNIFORM_DENIAL_MESSAGES: bool = False

    model_config = SettingsConfigDict(
        env_prefix="SWELLGUARD_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator(
        "SESSION_TIMEOUT_SECONDS",
        "SENSITIVE_SESSION_TIMEOUT_SECONDS",
        "RATE_LIMIT_WINDOW_SECONDS",
        "LOGIN_RATE_LIMIT",
        "MAX_FAILED_ATTEMPTS",
        "EMERGENCY_RATE_LIMIT",
        "AUDIT_BUFFER_SIZE",
    )
    def must_be_positive_int(cls, v):
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator(
        "CREDENTIAL_TIMEOUT_SECONDS",
        "MFA_TIMEOUT_SECONDS",
        "AUDIT_SINK_TIMEOUT_SECONDS",
        "ALERT_TIMEOUT_SECONDS",
        "SWEEP_INTERVAL_SECONDS",
    )
    def must_be_positive_float(cls, v):
        if v <= 0:
            raise ValueError("timeouts and intervals must be positive")
        return v

    @field_validator("AUDIT_SINK")
    def validate_audit_sink(cls, v):
        v = v.lower()
        if v not in ("memory", "database"):
            raise ValueError("AUDIT_SINK must be 'memory' or 'database'")
        return v

    @field_validator("SECRET_KEY")
    def validate_secret_key(cls, v):
        if len(v) < 16:
            import warnings
            warnings.warn("SECRET_KEY is shorter than 16 characters; session tokens are weakly signed")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get application settings with caching."""
    return Settings()


__all__ = ["Settings", "get_settings"]
