"""Tests for principal resolution and the RBAC checks."""
import pytest
from jose import jwt

from approvals.core.exceptions import AuthenticationError, AuthorizationError
from approvals.core.principal import Principal
from approvals.core.security import (
    decode_token, has_capability, has_role, principal_from_payload,
    require_capability, require_role,
)
from approvals.models import Role

from factories import MANAGER, OPERATOR, VIEWER, make_token


class TestTokenDecoding:

    def test_round_trip(self):
        payload = decode_token(make_token(MANAGER))
        assert principal_from_payload(payload) == MANAGER

    def test_wrong_secret_is_unauthenticated(self):
        token = jwt.encode({"sub": "2", "role": "manager"}, "not-the-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_legacy_id_claim(self):
        assert principal_from_payload({"id": 9, "role": "viewer"}) == Principal(9, "viewer")

    @pytest.mark.parametrize("payload", [
        {"role": "admin"},
        {"sub": "1"},
        {"sub": "abc", "role": "admin"},
    ])
    def test_incomplete_payload(self, payload):
        with pytest.raises(AuthenticationError):
            principal_from_payload(payload)


class TestPredicates:

    def test_has_role(self):
        assert has_role(MANAGER, ["admin", "manager"])
        assert not has_role(OPERATOR, ["admin", "manager"])

    def test_has_capability(self):
        perms = {"quotations": ["view", "approve"]}
        assert has_capability(perms, "quotations", "approve")
        assert not has_capability(perms, "quotations", "delete")
        assert not has_capability(perms, "billing", "view")

    def test_require_role(self):
        assert require_role(MANAGER, ["manager"]) is MANAGER
        with pytest.raises(AuthorizationError):
            require_role(OPERATOR, ["manager"])
        with pytest.raises(AuthenticationError):
            require_role(None, ["manager"])


class TestRequireCapability:

    def test_granted(self, seeded):
        assert require_capability(seeded, VIEWER, "approvals", "view") is VIEWER

    def test_not_granted(self, seeded):
        with pytest.raises(AuthorizationError):
            require_capability(seeded, OPERATOR, "approvals", "view")

    def test_unknown_role_holds_nothing(self, seeded):
        with pytest.raises(AuthorizationError):
            require_capability(seeded, Principal(77, "contractor"), "dashboard", "view")

    def test_deactivated_role_holds_nothing(self, seeded):
        seeded.query(Role).filter(Role.code == "viewer").one().is_active = False
        seeded.commit()
        with pytest.raises(AuthorizationError):
            require_capability(seeded, VIEWER, "approvals", "view")


class TestHttpAuthentication:

    def test_missing_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["kind"] == "Unauthenticated"

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_me_lists_permissions(self, client, viewer_headers):
        resp = client.get("/api/auth/me", headers=viewer_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == VIEWER.id
        assert body["role"] == "viewer"
        assert body["permissions"]["approvals"] == ["view"]

    def test_role_gate(self, client, operator_headers, manager_headers):
        assert client.get("/api/permissions", headers=operator_headers).status_code == 403
        assert client.get("/api/permissions", headers=manager_headers).status_code == 200

    def test_capability_gate(self, client, operator_headers, viewer_headers):
        resp = client.get("/api/approvals", headers=operator_headers)
        assert resp.status_code == 403
        assert resp.json()["kind"] == "Forbidden"
        assert client.get("/api/approvals", headers=viewer_headers).status_code == 200

    def test_request_id_is_echoed(self, client):
        resp = client.get("/api/health", headers={"X-Request-Id": "abc-123"})
        assert resp.headers["X-Request-Id"] == "abc-123"

    def test_admin_health_reports_components(self, client):
        body = client.get("/api/admin/health").json()
        assert body["database"] == "ok"
        assert body["cache"] == "disabled_or_unreachable"
        assert body["status"] == "healthy"
