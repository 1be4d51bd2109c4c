"""
Service layer for SwellGuard.

Collaborator implementations the security core is wired to by default.
"""
from .identity import IdentityRecord, InMemoryIdentityProvider

__all__ = ["IdentityRecord", "InMemoryIdentityProvider"]
