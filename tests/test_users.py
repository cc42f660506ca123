"""User administration API tests (Admin only)."""

from oversight.models.audit import AuditLog


class TestUserAdmin:
    def test_create_user(self, client, admin, headers):
        res = client.post("/api/v1/users", headers=headers(admin), json={
            "email": "New.Person@Oversight.org",
            "password": "Str0ngPass",
            "full_name": "New Person",
            "role": "Finance",
        })
        assert res.status_code == 201
        data = res.get_json()
        assert data["email"] == "new.person@oversight.org"
        assert data["role"] == "Finance"
        assert "password_hash" not in data

        log = AuditLog.query.filter_by(object_type="User", action="Create").one()
        assert log.actor_id == admin.id
        assert "password" not in (log.new_values or {})

    def test_duplicate_email_409(self, client, admin, pm, headers):
        res = client.post("/api/v1/users", headers=headers(admin), json={
            "email": pm.email, "password": "Str0ngPass", "full_name": "Dup", "role": "Finance",
        })
        assert res.status_code == 409

    def test_invalid_role_422(self, client, admin, headers):
        res = client.post("/api/v1/users", headers=headers(admin), json={
            "email": "x@oversight.org", "password": "Str0ngPass", "full_name": "X", "role": "Boss",
        })
        assert res.status_code == 422
        assert "role" in res.get_json()["details"]

    def test_weak_password_422(self, client, admin, headers):
        res = client.post("/api/v1/users", headers=headers(admin), json={
            "email": "y@oversight.org", "password": "weak", "full_name": "Y", "role": "Auditor",
        })
        assert res.status_code == 422

    def test_list_filters_by_role(self, client, admin, pm, finance, headers):
        res = client.get("/api/v1/users?role=Finance", headers=headers(admin))
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == finance.id

    def test_search_by_name(self, client, admin, pm, headers):
        res = client.get("/api/v1/users?search=obi", headers=headers(admin))
        assert [u["id"] for u in res.get_json()["items"]] == [pm.id]

    def test_update_role_and_deactivate(self, client, admin, pm, headers):
        res = client.put(f"/api/v1/users/{pm.id}", headers=headers(admin),
                         json={"role": "Auditor", "is_active": False})
        assert res.status_code == 200
        data = res.get_json()
        assert data["role"] == "Auditor"
        assert data["is_active"] is False

    def test_get_missing_user_404(self, client, admin, headers):
        res = client.get("/api/v1/users/9999", headers=headers(admin))
        assert res.status_code == 404

    def test_reset_password(self, client, admin, pm, headers):
        res = client.post(f"/api/v1/users/{pm.id}/reset-password", headers=headers(admin),
                          json={"password": "Res3tPass"})
        assert res.status_code == 200
        login = client.post("/api/v1/auth/login", json={"email": pm.email, "password": "Res3tPass"})
        assert login.status_code == 200
