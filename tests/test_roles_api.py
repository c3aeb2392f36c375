"""HTTP tests for roles and role permissions."""
import pytest


class TestRoleEndpoints:

    def test_list_roles(self, client, viewer_headers):
        resp = client.get("/api/roles", headers=viewer_headers)
        assert resp.status_code == 200
        codes = {r["code"] for r in resp.json()}
        assert codes == {"admin", "manager", "supervisor", "operator", "viewer"}

    def test_create_role_with_modules(self, client, admin_headers):
        resp = client.post("/api/roles", headers=admin_headers, json={
            "code": "auditor",
            "name": "Auditor",
            "description": "Reads reports",
            "modules": {"reports": ["view", "export"]},
        })
        assert resp.status_code == 201
        assert resp.json()["code"] == "auditor"

        perms = client.get("/api/roles/auditor/permissions", headers=admin_headers).json()
        assert perms == {"reports": ["export", "view"]}

    def test_create_duplicate_role(self, client, admin_headers):
        resp = client.post("/api/roles", headers=admin_headers, json={"code": "viewer", "name": "Another"})
        assert resp.status_code == 409

    def test_create_role_requires_admin(self, client, manager_headers):
        resp = client.post("/api/roles", headers=manager_headers, json={"code": "x", "name": "X"})
        assert resp.status_code == 403

    def test_deactivated_role_has_no_permissions(self, client, admin_headers):
        resp = client.put("/api/roles/viewer", headers=admin_headers, json={"is_active": False})
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        resp = client.get("/api/roles/viewer/permissions", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["kind"] == "NotFound"

    @pytest.mark.parametrize("body", [{"name": None}, {"is_active": None}])
    def test_null_required_field_is_a_validation_error(self, client, admin_headers, body):
        resp = client.put("/api/roles/viewer", headers=admin_headers, json=body)
        assert resp.status_code == 400
        assert resp.json()["kind"] == "ValidationError"

        resp = client.get("/api/roles", headers=admin_headers)
        viewer = next(r for r in resp.json() if r["code"] == "viewer")
        assert viewer["name"] and viewer["is_active"] is True

    def test_delete_refused_while_users_assigned(self, client, admin_headers):
        resp = client.delete("/api/roles/operator", headers=admin_headers)
        assert resp.status_code == 409
        assert "deactivate" in resp.json()["detail"]

    def test_delete_unused_role(self, client, admin_headers):
        client.post("/api/roles", headers=admin_headers, json={
            "code": "temp", "name": "Temporary", "modules": {"dashboard": ["view"]},
        })
        resp = client.delete("/api/roles/temp", headers=admin_headers)
        assert resp.status_code == 200
        assert client.get("/api/roles/temp/permissions", headers=admin_headers).status_code == 404


class TestPermissionEndpoints:

    def test_replace_with_module_map(self, client, admin_headers):
        resp = client.put("/api/roles/operator/permissions", headers=admin_headers, json={
            "permissions": {"dashboard": ["view"], "quotations": ["view", "create", "edit"]},
        })
        assert resp.status_code == 200
        assert resp.json() == {"dashboard": ["view"], "quotations": ["create", "edit", "view"]}

    def test_replace_with_pair_list(self, client, admin_headers):
        resp = client.put("/api/roles/operator/permissions", headers=admin_headers, json={
            "permissions": [
                {"module_id": "bookings", "action": "view"},
                {"module_id": "bookings", "action": "create"},
            ],
        })
        assert resp.status_code == 200
        got = client.get("/api/roles/operator/permissions", headers=admin_headers).json()
        assert got == {"bookings": ["create", "view"]}

    def test_unknown_pair_is_rejected_and_nothing_changes(self, client, admin_headers):
        before = client.get("/api/roles/operator/permissions", headers=admin_headers).json()

        resp = client.put("/api/roles/operator/permissions", headers=admin_headers, json={
            "permissions": {"dashboard": ["view"], "spaceships": ["launch"]},
        })
        assert resp.status_code == 400
        assert resp.json()["kind"] == "ValidationError"
        assert "spaceships:launch" in resp.json()["detail"]

        after = client.get("/api/roles/operator/permissions", headers=admin_headers).json()
        assert after == before

    def test_replace_requires_admin(self, client, manager_headers):
        resp = client.put("/api/roles/operator/permissions", headers=manager_headers, json={
            "permissions": {"dashboard": ["view"]},
        })
        assert resp.status_code == 403

    def test_catalog(self, client, viewer_headers):
        resp = client.get("/api/permissions/catalog", headers=viewer_headers)
        assert resp.status_code == 200
        assert "disburse" in resp.json()["cash_advance"]

    def test_replace_is_visible_in_audit_trail(self, client, admin_headers):
        client.put("/api/roles/viewer/permissions", headers=admin_headers, json={
            "permissions": {"dashboard": ["view"]},
        })
        resp = client.get(
            "/api/admin/audit", headers=admin_headers,
            params={"action": "role.permissions_replaced"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        assert body["logs"][0]["resource_id"] == "viewer"
        assert body["logs"][0]["ip_address"] == "testclient"
