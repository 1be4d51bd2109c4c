# auth/two_factor.py
"""
Multi-factor verification for admin logins.

The gateway only depends on the ``MfaVerifier`` contract. ``TotpMfaVerifier``
is the bundled implementation: RFC 6238 codes via pyotp with single-use
backup codes as a fallback.
"""
import asyncio
import io
import secrets
from typing import Dict, List, Optional, Protocol, runtime_checkable

import pyotp
import qrcode


@runtime_checkable
class MfaVerifier(Protocol):
    """Checks a second-factor code for a subject."""

    async def verify(self, subject_id: str, code: str) -> bool:
        ...


@runtime_checkable
class TotpSecretStore(Protocol):
    """Where per-subject TOTP secrets live."""

    async def get_totp_secret(self, subject_id: str) -> Optional[str]:
        ...


class TwoFactorService:
    """TOTP enrollment helpers."""

    @staticmethod
    def generate_secret() -> str:
        """Generate a new TOTP secret."""
        return pyotp.random_base32()

    @staticmethod
    def generate_backup_codes(count: int = 10) -> List[str]:
        """Generate backup codes."""
        return [secrets.token_hex(4).upper() for _ in range(count)]

    @staticmethod
    def provisioning_uri(secret: str, account: str, issuer: str = "SwellGuard") -> str:
        return pyotp.totp.TOTP(secret).provisioning_uri(name=account, issuer_name=issuer)

    @staticmethod
    def render_qr_ascii(data: str) -> str:
        """Render a QR code as text for terminals."""
        qr = qrcode.QRCode(version=1, border=1)
        qr.add_data(data)
        qr.make(fit=True)
        buffer = io.StringIO()
        qr.print_ascii(out=buffer, invert=True)
        return buffer.getvalue()

    @staticmethod
    def verify_totp(secret: str, code: str, last_used: Optional[str] = None) -> bool:
        """Verify TOTP code."""
        if code == last_used:
            return False  # Prevent code reuse

        totp = pyotp.TOTP(secret)
        return totp.verify(code, valid_window=1)


class TotpMfaVerifier:
    """MfaVerifier backed by TOTP secrets, with optional backup codes."""

    def __init__(self, secret_store: TotpSecretStore):
        self.secret_store = secret_store
        self._last_used: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def verify(self, subject_id: str, code: str) -> bool:
        code = (code or "").strip().replace(" ", "")
        if not code:
            return False

        if code.isdigit():
            secret = await self.secret_store.get_totp_secret(subject_id)
            if secret:
                async with self._lock:
                    if TwoFactorService.verify_totp(secret, code, self._last_used.get(subject_id)):
                        self._last_used[subject_id] = code
                        return True

        # Try backup code
        consume = getattr(self.secret_store, "consume_backup_code", None)
        if consume is not None:
            return bool(await consume(subject_id, code))
        return False


__all__ = ['MfaVerifier', 'TotpSecretStore', 'TwoFactorService', 'TotpMfaVerifier']
