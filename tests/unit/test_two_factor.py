"""
Unit tests for TOTP multi-factor verification.
"""
import pyotp
import pytest

from swellguard.auth.two_factor import TotpMfaVerifier, TwoFactorService

from conftest import ADMIN_EMAIL, BACKUP_CODE, current_totp


class TestTwoFactorService:
    """Test cases for enrollment helpers."""

    def test_generate_secret_is_base32(self):
        secret = TwoFactorService.generate_secret()

        assert len(secret) >= 16
        assert pyotp.TOTP(secret).now().isdigit()

    def test_backup_codes_are_unique(self):
        codes = TwoFactorService.generate_backup_codes(10)

        assert len(set(codes)) == 10

    def test_provisioning_uri(self):
        secret = TwoFactorService.generate_secret()

        uri = TwoFactorService.provisioning_uri(secret, "ops@example.com")

        assert uri.startswith("otpauth://totp/")
        assert "SwellGuard" in uri

    def test_render_qr_ascii(self):
        rendered = TwoFactorService.render_qr_ascii("otpauth://totp/SwellGuard:ops")

        assert len(rendered.splitlines()) > 10

    def test_verify_totp_rejects_last_used_code(self):
        secret = TwoFactorService.generate_secret()
        code = pyotp.TOTP(secret).now()

        assert TwoFactorService.verify_totp(secret, code)
        assert not TwoFactorService.verify_totp(secret, code, last_used=code)


class TestTotpMfaVerifier:
    """Test cases for TotpMfaVerifier."""

    @pytest.mark.asyncio
    async def test_accepts_current_code_once(self, identity, totp_secret):
        verifier = TotpMfaVerifier(identity)
        code = current_totp(totp_secret)

        assert await verifier.verify(ADMIN_EMAIL, code)
        assert not await verifier.verify(ADMIN_EMAIL, code)

    @pytest.mark.asyncio
    async def test_rejects_wrong_code(self, identity):
        verifier = TotpMfaVerifier(identity)

        assert not await verifier.verify(ADMIN_EMAIL, "000000x")
        assert not await verifier.verify(ADMIN_EMAIL, "")

    @pytest.mark.asyncio
    async def test_backup_code_is_single_use(self, identity):
        verifier = TotpMfaVerifier(identity)

        assert await verifier.verify(ADMIN_EMAIL, BACKUP_CODE.lower())
        assert not await verifier.verify(ADMIN_EMAIL, BACKUP_CODE)

    @pytest.mark.asyncio
    async def test_unknown_subject(self, identity, totp_secret):
        verifier = TotpMfaVerifier(identity)

        assert not await verifier.verify("ghost@example.com", current_totp(totp_secret))
