"""
Activity API tests.

Covers:
  - create/update validation (dates, progress, annual estimates vs total)
  - optimistic concurrency via ``version``
  - listing filters and sorting
  - soft delete and objective total recomputation
"""

from oversight.models import db
from oversight.models.audit import AuditLog
from oversight.models.objective import InvestmentObjective


def _objective_total(objective_id):
    return float(db.session.get(InvestmentObjective, objective_id).computed_estimated_spend_usd)


class TestActivityCreate:
    def test_create(self, activity, objective):
        assert activity["code"] == "ACT-0001"
        assert activity["objective_code"] == objective["code"]
        assert activity["status"] == "Planned"
        assert activity["version"] == 1
        assert activity["lock"]["is_locked"] is False
        assert activity["annual_estimates"] == {"2024": 12000.0, "2025": 8000.0}

    def test_timestamps_serialised_as_utc(self, client, pm, activity, headers):
        data = client.get(f"/api/v1/activities/{activity['id']}", headers=headers(pm)).get_json()
        assert data["created_at"].endswith("+00:00")
        assert data["updated_at"].endswith("+00:00")
        assert data["start_date"] == "2024-01-15"

    def test_total_derived_from_annual_estimates(self, client, pm, objective, headers):
        res = client.post("/api/v1/activities", headers=headers(pm), json={
            "objective_id": objective["id"], "title": "Derived",
            "annual_estimates": {"2026": 1500.5, "2027": 499.5},
        })
        assert res.status_code == 201
        assert res.get_json()["estimated_spend_usd_total"] == 2000

    def test_estimates_must_sum_to_total(self, client, pm, objective, headers):
        res = client.post("/api/v1/activities", headers=headers(pm), json={
            "objective_id": objective["id"], "title": "Mismatch",
            "estimated_spend_usd_total": 5000, "annual_estimates": {"2024": 1000},
        })
        assert res.status_code == 422
        assert "annual_estimates" in res.get_json()["details"]

    def test_estimate_year_out_of_range(self, client, pm, objective, headers):
        res = client.post("/api/v1/activities", headers=headers(pm), json={
            "objective_id": objective["id"], "title": "Old", "annual_estimates": {"1999": 10},
        })
        assert res.status_code == 422

    def test_end_before_start(self, client, pm, objective, headers):
        res = client.post("/api/v1/activities", headers=headers(pm), json={
            "objective_id": objective["id"], "title": "Dates",
            "start_date": "2025-05-01", "end_date": "2025-04-01",
        })
        assert res.status_code == 422
        assert "end_date" in res.get_json()["details"]

    def test_progress_bounds(self, client, pm, objective, headers):
        res = client.post("/api/v1/activities", headers=headers(pm), json={
            "objective_id": objective["id"], "title": "Progress", "progress_percent": 101,
        })
        assert res.status_code == 422

    def test_unknown_objective(self, client, pm, headers):
        res = client.post("/api/v1/activities", headers=headers(pm),
                          json={"objective_id": 999, "title": "Orphan"})
        assert res.status_code == 422
        assert res.get_json()["details"]["objective_id"] == "objective not found"

    def test_objective_total_updated(self, objective, activity):
        assert _objective_total(objective["id"]) == 20000

    def test_create_audited(self, pm, activity):
        log = AuditLog.query.filter_by(object_type="Activity", action="Create").one()
        assert log.actor_id == pm.id
        assert log.new_values["title"] == "Borehole drilling"

    def test_auditor_cannot_create(self, client, auditor, objective, headers):
        res = client.post("/api/v1/activities", headers=headers(auditor),
                          json={"objective_id": objective["id"], "title": "Nope"})
        assert res.status_code == 403

    def test_non_json_body_rejected(self, client, pm, headers):
        res = client.post("/api/v1/activities", headers={**headers(pm), "Content-Type": "text/plain"},
                          data="title=x")
        assert res.status_code == 415


class TestActivityUpdate:
    def test_update_bumps_version_and_audits(self, client, pm, activity, headers):
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                         json={"status": "InProgress", "progress_percent": 40, "version": 1})
        assert res.status_code == 200
        data = res.get_json()
        assert data["version"] == 2
        assert data["status"] == "InProgress"

        log = AuditLog.query.filter_by(object_type="Activity", action="Update").one()
        assert log.previous_values == {"status": "Planned", "progress_percent": 0}
        assert log.new_values == {"status": "InProgress", "progress_percent": 40}

    def test_noop_update_keeps_version(self, client, pm, activity, headers):
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                         json={"title": "Borehole drilling"})
        assert res.get_json()["version"] == 1

    def test_stale_version_409(self, client, pm, activity, headers):
        client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                   json={"lead": "Someone else", "version": 1})
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                         json={"lead": "Me", "version": 1})
        assert res.status_code == 409
        assert res.get_json()["details"]["current_version"] == 2

    def test_estimate_change_recomputes_objective(self, client, pm, objective, activity, headers):
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm), json={
            "estimated_spend_usd_total": 30000,
            "annual_estimates": {"2024": 12000, "2025": 18000},
        })
        assert res.status_code == 200
        assert _objective_total(objective["id"]) == 30000

    def test_total_alone_must_match_existing_estimates(self, client, pm, activity, headers):
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                         json={"estimated_spend_usd_total": 25000})
        assert res.status_code == 422


class TestActivityListAndDelete:
    def _make(self, client, pm, objective, headers, **fields):
        body = {"objective_id": objective["id"], **fields}
        res = client.post("/api/v1/activities", headers=headers(pm), json=body)
        assert res.status_code == 201
        return res.get_json()

    def test_filter_by_status_and_search(self, client, pm, objective, activity, headers):
        self._make(client, pm, objective, headers, title="School feeding", status="InProgress")
        res = client.get("/api/v1/activities?status=InProgress", headers=headers(pm))
        assert [a["title"] for a in res.get_json()["items"]] == ["School feeding"]
        res = client.get("/api/v1/activities?search=bore", headers=headers(pm))
        assert res.get_json()["total"] == 1

    def test_year_filter_keeps_overlapping(self, client, pm, objective, activity, headers):
        self._make(client, pm, objective, headers, title="Later",
                   start_date="2027-01-01", end_date="2027-12-31")
        res = client.get("/api/v1/activities?start_year=2025&end_year=2025", headers=headers(pm))
        assert [a["title"] for a in res.get_json()["items"]] == ["Borehole drilling"]

    def test_sort_desc(self, client, pm, objective, activity, headers):
        self._make(client, pm, objective, headers, title="Zinc supplements")
        res = client.get("/api/v1/activities?sort_by=title&sort_dir=desc", headers=headers(pm))
        assert res.get_json()["items"][0]["title"] == "Zinc supplements"

    def test_invalid_sort_422(self, client, pm, headers):
        res = client.get("/api/v1/activities?sort_by=password", headers=headers(pm))
        assert res.status_code == 422

    def test_delete_soft_deletes(self, client, pm, objective, activity, headers):
        res = client.delete(f"/api/v1/activities/{activity['id']}?version=1", headers=headers(pm))
        assert res.status_code == 200
        assert client.get(f"/api/v1/activities/{activity['id']}", headers=headers(pm)).status_code == 404
        assert _objective_total(objective["id"]) == 0

    def test_delete_with_stale_version(self, client, pm, activity, headers):
        res = client.delete(f"/api/v1/activities/{activity['id']}?version=7", headers=headers(pm))
        assert res.status_code == 409
