"""
Actual spend API tests.

Covers CRUD, activity total recomputation and variance alerts.
"""

from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.notification import Notification


def _create(client, user, headers, activity_id, amount, **extra):
    return client.post("/api/v1/actuals", headers=headers(user), json={
        "activity_id": activity_id, "entry_date": "2024-03-15", "amount_usd": amount, **extra,
    })


class TestActualCRUD:
    def test_create_updates_activity_total(self, client, finance, activity, headers):
        res = _create(client, finance, headers, activity["id"], 2500.75, category="Equipment")
        assert res.status_code == 201
        assert res.get_json()["amount_usd"] == 2500.75

        detail = client.get(f"/api/v1/activities/{activity['id']}", headers=headers(finance)).get_json()
        assert detail["actual_spend_usd_total"] == 2500.75
        assert detail["variance"] == 2500.75 - 20000

    def test_pm_cannot_create(self, client, pm, activity, headers):
        res = _create(client, pm, headers, activity["id"], 100)
        assert res.status_code == 403

    def test_amount_must_be_positive(self, client, finance, activity, headers):
        res = _create(client, finance, headers, activity["id"], 0)
        assert res.status_code == 422
        assert "amount_usd" in res.get_json()["details"]

    def test_entry_date_required(self, client, finance, activity, headers):
        res = client.post("/api/v1/actuals", headers=headers(finance),
                          json={"activity_id": activity["id"], "amount_usd": 10})
        assert res.status_code == 422
        assert res.get_json()["details"]["entry_date"] == "required"

    def test_unknown_activity_404(self, client, finance, headers):
        res = _create(client, finance, headers, 999, 10)
        assert res.status_code == 404

    def test_list_for_activity(self, client, finance, activity, headers):
        _create(client, finance, headers, activity["id"], 100)
        _create(client, finance, headers, activity["id"], 200)
        res = client.get(f"/api/v1/activities/{activity['id']}/actuals", headers=headers(finance))
        assert res.get_json()["total"] == 2

    def test_update_and_delete_recompute(self, client, finance, activity, headers):
        actual = _create(client, finance, headers, activity["id"], 100).get_json()
        client.put(f"/api/v1/actuals/{actual['id']}", headers=headers(finance), json={"amount_usd": 400})
        assert float(db.session.get(Activity, activity["id"]).actual_spend_usd_total) == 400

        res = client.delete(f"/api/v1/actuals/{actual['id']}", headers=headers(finance))
        assert res.status_code == 200
        assert float(db.session.get(Activity, activity["id"]).actual_spend_usd_total) == 0
        assert client.get(f"/api/v1/actuals/{actual['id']}", headers=headers(finance)).status_code == 404


class TestVarianceAlerts:
    def test_overspend_notifies_finance_and_admin(self, client, finance, admin, pm, activity, headers):
        _create(client, finance, headers, activity["id"], 25000)
        alerts = Notification.query.filter_by(type="VarianceAlert").all()
        assert {n.user_id for n in alerts} == {finance.id, admin.id}
        assert "25.0%" in alerts[0].message
        assert alerts[0].title == "Spend Exceeded Estimate"

    def test_within_estimate_no_alert(self, client, finance, activity, headers):
        _create(client, finance, headers, activity["id"], 19999)
        assert Notification.query.filter_by(type="VarianceAlert").count() == 0
