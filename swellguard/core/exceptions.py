"""
Custom exceptions for SwellGuard.

Policy denials (rate limited, locked out, wrong password, ...) are ordinary
outcomes and never appear here. These exceptions cover infrastructure and
configuration faults.
"""
from typing import Optional, Dict, Any


class SwellGuardError(Exception):
    """Base exception for all SwellGuard errors."""

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            context: Additional context about the error
            original_exception: The original exception that caused this error
        """
        super().__init__(message)
        self.context = context or {}
        self.original_exception = original_exception


class ConfigurationError(SwellGuardError):
    """Raised at startup when the permission matrix or settings are malformed."""
    pass


class CollaboratorError(SwellGuardError):
    """Raised when an external collaborator (identity provider, MFA service, sink) fails."""
    pass


class CollaboratorTimeout(CollaboratorError):
    """Raised when an external collaborator does not answer within its time bound."""
    pass


class SessionTokenError(SwellGuardError):
    """Raised when a bearer session token is malformed, forged or expired."""
    pass
