"""
In-process identity provider used for development, tests and small deployments.

Implements the CredentialVerifier, RoleStore and TotpSecretStore contracts
over passlib hashes held in memory, optionally loaded from a JSON file::

    {"users": [{"email": "ops@example.com", "password_hash": "$pbkdf2-sha256$...",
                "role": "admin", "totp_secret": "BASE32...", "backup_code_hashes": []}]}
"""
import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..core.exceptions import ConfigurationError
from ..core.security import hash_secret, verify_secret


@dataclass
class IdentityRecord:
    """One account known to the identity provider."""
    email: str
    password_hash: str
    role: Optional[str] = None
    totp_secret: Optional[str] = None
    backup_code_hashes: List[str] = field(default_factory=list)
    is_active: bool = True


class InMemoryIdentityProvider:
    """Credential, role and TOTP secret lookups over an in-memory user table."""

    def __init__(self, users: Iterable[IdentityRecord] = ()):
        self._users: Dict[str, IdentityRecord] = {}
        self._lock = asyncio.Lock()
        self._dummy_hash: Optional[str] = None
        for user in users:
            self._users[self._normalize(user.email)] = user

    @staticmethod
    def _normalize(email: str) -> str:
        return (email or "").strip().lower()

    def add_user(
        self,
        email: str,
        password: Optional[str] = None,
        *,
        password_hash: Optional[str] = None,
        role: Optional[str] = None,
        totp_secret: Optional[str] = None,
        backup_codes: Iterable[str] = (),
        is_active: bool = True
    ) -> IdentityRecord:
        """Register an account. Pass either a plain password or an existing hash."""
        if password_hash is None:
            if password is None:
                raise ValueError("Either password or password_hash is required")
            password_hash = hash_secret(password)
        record = IdentityRecord(
            email=email,
            password_hash=password_hash,
            role=role,
            totp_secret=totp_secret,
            backup_code_hashes=[hash_secret(code.upper()) for code in backup_codes],
            is_active=is_active,
        )
        self._users[self._normalize(email)] = record
        return record

    def _lookup(self, email: str) -> Optional[IdentityRecord]:
        return self._users.get(self._normalize(email))

    async def verify(self, identifier: str, secret: str) -> bool:
        user = self._lookup(identifier)
        if user is None or not user.is_active:
            # Spend the same hashing time for unknown accounts
            if self._dummy_hash is None:
                self._dummy_hash = await asyncio.to_thread(hash_secret, "swellguard-dummy-secret")
            await asyncio.to_thread(verify_secret, secret or "", self._dummy_hash)
            return False
        return await asyncio.to_thread(verify_secret, secret or "", user.password_hash)

    async def get_role(self, subject_id: str) -> Optional[str]:
        user = self._lookup(subject_id)
        return user.role if user and user.is_active else None

    async def get_totp_secret(self, subject_id: str) -> Optional[str]:
        user = self._lookup(subject_id)
        return user.totp_secret if user else None

    async def consume_backup_code(self, subject_id: str, code: str) -> bool:
        """Accept a backup code once, then forget it."""
        user = self._lookup(subject_id)
        if user is None or not code:
            return False
        async with self._lock:
            for stored in list(user.backup_code_hashes):
                if await asyncio.to_thread(verify_secret, code.upper(), stored):
                    user.backup_code_hashes.remove(stored)
                    return True
        return False

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryIdentityProvider":
        """Load accounts from a JSON identity file."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Could not read identity file {path}: {e}",
                context={"path": str(path)},
                original_exception=e,
            )

        entries = raw.get("users") if isinstance(raw, dict) else None
        if not isinstance(entries, list):
            raise ConfigurationError(f"Identity file {path} must contain a 'users' list")

        users = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or not entry.get("email") or not entry.get("password_hash"):
                raise ConfigurationError(
                    f"Identity entry #{index} needs at least 'email' and 'password_hash'",
                    context={"path": str(path), "index": index},
                )
            users.append(IdentityRecord(
                email=entry["email"],
                password_hash=entry["password_hash"],
                role=entry.get("role"),
                totp_secret=entry.get("totp_secret"),
                backup_code_hashes=list(entry.get("backup_code_hashes", [])),
                is_active=bool(entry.get("is_active", True)),
            ))
        return cls(users)


__all__ = ['IdentityRecord', 'InMemoryIdentityProvider']
