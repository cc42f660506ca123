"""
Investment objective API tests.

Covers CRUD, derived regions, filters, aggregates and cascade soft delete.
"""

from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.notification import Notification


class TestObjectiveCRUD:
    def test_create_derives_code_and_regions(self, objective):
        assert objective["code"] == "OBJ-0001"
        assert objective["states"] == ["Kano", "Lagos"]
        assert objective["regions"] == ["North-West", "South-West"]
        assert objective["status"] == "Active"
        assert objective["computed_estimated_spend_usd"] == 0

    def test_serial_numbers_increment(self, client, pm, objective, headers):
        res = client.post("/api/v1/objectives", headers=headers(pm), json={"title": "Second"})
        assert res.get_json()["code"] == "OBJ-0002"

    def test_title_required(self, client, pm, headers):
        res = client.post("/api/v1/objectives", headers=headers(pm), json={"title": "  "})
        assert res.status_code == 422
        assert res.get_json()["details"]["title"] == "required"

    def test_unknown_state_rejected(self, client, pm, headers):
        res = client.post("/api/v1/objectives", headers=headers(pm),
                          json={"title": "Bad", "states": ["Atlantis"]})
        assert res.status_code == 422
        assert "Atlantis" in res.get_json()["details"]["states"]

    def test_end_year_before_start_rejected(self, client, pm, headers):
        res = client.post("/api/v1/objectives", headers=headers(pm), json={
            "title": "Years", "overall_start_year": 2026, "overall_end_year": 2024,
        })
        assert res.status_code == 422
        assert "overall_end_year" in res.get_json()["details"]

    def test_finance_cannot_create(self, client, finance, headers):
        res = client.post("/api/v1/objectives", headers=headers(finance), json={"title": "X"})
        assert res.status_code == 403

    def test_create_notifies_oversight_roles(self, client, pm, finance, committee, headers):
        client.post("/api/v1/objectives", headers=headers(pm), json={"title": "Notify"})
        recipients = {n.user_id for n in Notification.query.filter_by(type="ObjectiveCreated")}
        assert recipients == {finance.id, committee.id}

    def test_update_recomputes_regions(self, client, pm, objective, headers):
        res = client.put(f"/api/v1/objectives/{objective['id']}", headers=headers(pm),
                         json={"states": ["Enugu"]})
        assert res.status_code == 200
        assert res.get_json()["regions"] == ["South-East"]

    def test_get_includes_activities(self, client, pm, objective, activity, headers):
        res = client.get(f"/api/v1/objectives/{objective['id']}", headers=headers(pm))
        data = res.get_json()
        assert [a["id"] for a in data["activities"]] == [activity["id"]]

    def test_missing_objective_404(self, client, pm, headers):
        res = client.get("/api/v1/objectives/999", headers=headers(pm))
        assert res.status_code == 404


class TestObjectiveListing:
    def test_filter_by_region(self, client, pm, objective, headers):
        client.post("/api/v1/objectives", headers=headers(pm),
                    json={"title": "Delta programme", "states": ["Delta"]})
        res = client.get("/api/v1/objectives?region=South-West", headers=headers(pm))
        data = res.get_json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == objective["id"]

    def test_filter_by_state(self, client, pm, objective, headers):
        res = client.get("/api/v1/objectives?state=Delta", headers=headers(pm))
        assert res.get_json()["total"] == 0

    def test_activity_count_in_list(self, client, pm, objective, activity, headers):
        res = client.get("/api/v1/objectives", headers=headers(pm))
        assert res.get_json()["items"][0]["activity_count"] == 1

    def test_default_page_size(self, client, pm, headers):
        res = client.get("/api/v1/objectives", headers=headers(pm))
        assert res.get_json()["limit"] == 20


class TestObjectiveTotals:
    def test_activity_estimates_roll_up(self, client, pm, objective, activity, headers):
        res = client.get(f"/api/v1/objectives/{objective['id']}", headers=headers(pm))
        assert res.get_json()["computed_estimated_spend_usd"] == 20000

    def test_aggregates_by_year(self, client, pm, objective, activity, headers):
        res = client.get(f"/api/v1/objectives/{objective['id']}/aggregates", headers=headers(pm))
        data = res.get_json()
        assert data["by_year"] == {"2024": 12000, "2025": 8000}
        assert data["total_estimated_spend_usd"] == 20000
        assert data["activity_count"] == 1

    def test_delete_cascades_to_activities(self, client, pm, objective, activity, headers):
        res = client.delete(f"/api/v1/objectives/{objective['id']}", headers=headers(pm))
        assert res.status_code == 200
        assert res.get_json()["deleted_activities"] == 1
        assert db.session.get(Activity, activity["id"]).deleted_at is not None
        res = client.get(f"/api/v1/activities/{activity['id']}", headers=headers(pm))
        assert res.status_code == 404
