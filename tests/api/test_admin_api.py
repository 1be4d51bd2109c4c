"""
API tests for the admin endpoints.
"""
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from swellguard import create_app
from swellguard.auth.permissions import build_permission_matrix
from swellguard.auth.two_factor import TotpMfaVerifier
from swellguard.context import build_security_context

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, MODERATOR_EMAIL, MODERATOR_PASSWORD, current_totp
from test_auth_api import bearer, login


@pytest.fixture
def admin_token(client, totp_secret) -> str:
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD, current_totp(totp_secret))


@pytest.fixture
def moderator_token(client, totp_secret) -> str:
    return login(client, MODERATOR_EMAIL, MODERATOR_PASSWORD, current_totp(totp_secret))


class TestPermissions:
    """Test cases for the permission endpoints."""

    def test_moderator_matrix(self, client, moderator_token):
        response = client.get("/admin/permissions", headers=bearer(moderator_token))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["role"] == "moderator"
        assert body["permissions"] == {
            "users": ["read", "update"],
            "logs": ["read"],
            "analytics": ["read"],
        }

    def test_check(self, client, admin_token, moderator_token):
        params = {"resource": "system", "action": "delete"}

        as_admin = client.get("/admin/permissions/check", params=params, headers=bearer(admin_token))
        as_moderator = client.get("/admin/permissions/check", params=params, headers=bearer(moderator_token))

        assert as_admin.json()["allowed"] is True
        assert as_moderator.json()["allowed"] is False

    def test_check_rejects_unknown_resource(self, client, admin_token):
        response = client.get(
            "/admin/permissions/check",
            params={"resource": "billing", "action": "read"},
            headers=bearer(admin_token),
        )

        assert response.status_code == 422


class TestAuditLog:
    """Test cases for GET /admin/audit."""

    def test_query(self, client, admin_token):
        response = client.get(
            "/admin/audit",
            params={"subject_id": ADMIN_EMAIL, "action": "admin_login_success"},
            headers=bearer(admin_token),
        )

        assert response.status_code == status.HTTP_200_OK
        page = response.json()
        assert [e["action"] for e in page["items"]] == ["admin_login_success"]
        assert page["items"][0]["digest"]
        assert page["limit"] == 50

    def test_limit_is_bounded(self, client, admin_token):
        response = client.get("/admin/audit", params={"limit": 501}, headers=bearer(admin_token))

        assert response.status_code == 422

    def test_requires_logs_read(self, settings, identity, audit_sink, clock, totp_secret):
        matrix = build_permission_matrix({
            "admin": {"system": ["read"]},
            "moderator": {"users": ["read"]},
        })
        context = build_security_context(
            settings,
            credential_verifier=identity,
            role_store=identity,
            mfa_verifier=TotpMfaVerifier(identity),
            audit_sink=audit_sink,
            permission_matrix=matrix,
            clock=clock,
        )
        with TestClient(create_app(context=context)) as client:
            token = login(client, MODERATOR_EMAIL, MODERATOR_PASSWORD, current_totp(totp_secret))

            response = client.get("/admin/audit", headers=bearer(token))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        denied = [e for e in audit_sink.events if e.action == "admin_access_denied"]
        assert denied[-1].resource == "logs"


class TestAdminActions:
    """Test cases for POST /admin/actions."""

    def test_record_action(self, client, admin_token, audit_sink):
        response = client.post(
            "/admin/actions",
            json={"action": "delete_user", "resource": "users", "details": {"target": "u-17"}},
            headers=bearer(admin_token),
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["severity"] == "high"
        event = next(e for e in audit_sink.events if e.action == "admin_delete_user")
        assert event.subject_id == ADMIN_EMAIL
        assert event.details["target"] == "u-17"

    def test_requires_session(self, client):
        response = client.post("/admin/actions", json={"action": "view", "resource": "users"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestLockoutReset:
    """Test cases for POST /admin/lockouts/reset."""

    def test_moderator_can_reset(self, client, context, moderator_token):
        for _ in range(3):
            client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
        locked = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert locked.status_code == status.HTTP_403_FORBIDDEN

        response = client.post(
            "/admin/lockouts/reset",
            json={"email": ADMIN_EMAIL, "source_address": "testclient"},
            headers=bearer(moderator_token),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["identifier"] == f"{ADMIN_EMAIL}:testclient"
        retry = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert retry.status_code == status.HTTP_202_ACCEPTED

    def test_reset_ignores_email_case(self, client, moderator_token):
        for _ in range(3):
            client.post("/auth/login", json={"email": ADMIN_EMAIL.upper(), "password": "wrong"})
        locked = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert locked.status_code == status.HTTP_403_FORBIDDEN

        response = client.post(
            "/admin/lockouts/reset",
            json={"email": "Admin@Example.com", "source_address": "testclient"},
            headers=bearer(moderator_token),
        )

        assert response.json()["identifier"] == f"{ADMIN_EMAIL}:testclient"
        retry = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert retry.status_code == status.HTTP_202_ACCEPTED


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "ok"
        assert body["audit_sink"] == "memory"
        assert body["sweeper"] == "running"
