"""
Authentication endpoint tests.

Covers:
  - login / refresh / logout round trip
  - generic 401 for bad credentials and inactive accounts
  - /me, password change, notification preferences
  - role checks on protected routes
"""

from oversight.models.audit import AuditLog
from oversight.models.user import Session

PASSWORD = "Passw0rd!"


def _login(client, email, password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestLogin:
    def test_login_returns_token_pair(self, client, pm):
        res = _login(client, pm.email)
        assert res.status_code == 200
        data = res.get_json()
        assert data["token_type"] == "Bearer"
        assert data["access_token"] and data["refresh_token"]
        assert data["user"]["email"] == pm.email
        assert "preferences" in data["user"]

    def test_login_is_case_insensitive_on_email(self, client, pm):
        res = _login(client, pm.email.upper())
        assert res.status_code == 200

    def test_login_records_session_and_audit(self, client, pm):
        _login(client, pm.email)
        assert Session.query.filter_by(user_id=pm.id, is_active=True).count() == 1
        log = AuditLog.query.filter_by(object_type="Session").first()
        assert log.actor_id == pm.id
        assert log.comment == "User logged in"

    def test_wrong_password_401(self, client, pm):
        res = _login(client, pm.email, "WrongPass1")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_unknown_email_401(self, client):
        res = _login(client, "nobody@oversight.org")
        assert res.status_code == 401

    def test_inactive_user_cannot_login(self, client, make_user):
        user = make_user("Finance", is_active=False)
        res = _login(client, user.email)
        assert res.status_code == 401

    def test_missing_fields_400(self, client):
        res = client.post("/api/v1/auth/login", json={"email": ""})
        assert res.status_code == 400


class TestRefreshAndLogout:
    def test_refresh_rotates_token(self, client, pm):
        tokens = _login(client, pm.email).get_json()
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 200
        new_tokens = res.get_json()
        assert new_tokens["refresh_token"] != tokens["refresh_token"]

        # The old refresh token is no longer usable
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 401

    def test_refresh_rejects_garbage(self, client):
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": "not-a-token"})
        assert res.status_code == 401

    def test_logout_revokes_session(self, client, pm):
        tokens = _login(client, pm.email).get_json()
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}
        res = client.post("/api/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]},
                          headers=headers)
        assert res.status_code == 200
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 401


class TestMe:
    def test_me_requires_token(self, client):
        res = client.get("/api/v1/auth/me")
        assert res.status_code == 401

    def test_me_rejects_invalid_token(self, client):
        res = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer abc.def.ghi"})
        assert res.status_code == 401

    def test_me_returns_profile(self, client, finance, headers):
        res = client.get("/api/v1/auth/me", headers=headers(finance))
        assert res.status_code == 200
        data = res.get_json()
        assert data["role"] == "Finance"
        assert data["preferences"]["email_approval_submitted"] is True

    def test_deactivated_user_token_stops_working(self, client, finance, headers):
        hdrs = headers(finance)
        finance.is_active = False
        from oversight.models import db
        db.session.commit()
        res = client.get("/api/v1/auth/me", headers=hdrs)
        assert res.status_code == 401


class TestPasswordAndPreferences:
    def test_change_password(self, client, pm, headers):
        res = client.put("/api/v1/auth/password", headers=headers(pm),
                         json={"current_password": PASSWORD, "new_password": "N3wSecret"})
        assert res.status_code == 200
        assert _login(client, pm.email, "N3wSecret").status_code == 200

    def test_wrong_current_password_403(self, client, pm, headers):
        res = client.put("/api/v1/auth/password", headers=headers(pm),
                         json={"current_password": "Nope1234", "new_password": "N3wSecret"})
        assert res.status_code == 403

    def test_weak_new_password_422(self, client, pm, headers):
        res = client.put("/api/v1/auth/password", headers=headers(pm),
                         json={"current_password": PASSWORD, "new_password": "short"})
        assert res.status_code == 422
        assert "password" in res.get_json()["details"]

    def test_update_preferences(self, client, pm, headers):
        res = client.put("/api/v1/auth/preferences", headers=headers(pm),
                         json={"email_comment": False})
        assert res.status_code == 200
        assert res.get_json()["preferences"]["email_comment"] is False

    def test_unknown_preference_422(self, client, pm, headers):
        res = client.put("/api/v1/auth/preferences", headers=headers(pm),
                         json={"email_everything": True})
        assert res.status_code == 422


class TestRoleGuards:
    def test_non_admin_cannot_list_users(self, client, pm, headers):
        res = client.get("/api/v1/users", headers=headers(pm))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_admin_passes_every_role_check(self, client, admin, headers):
        res = client.post("/api/v1/objectives", headers=headers(admin),
                          json={"title": "Admin-created objective"})
        assert res.status_code == 201
