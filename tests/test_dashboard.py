"""Dashboard metric endpoint tests."""

import pytest


@pytest.fixture()
def portfolio(client, pm, finance, objective, activity, headers):
    """Two activities on the Kano/Lagos objective; the first is over budget."""
    second = client.post("/api/v1/activities", headers=headers(pm), json={
        "objective_id": objective["id"], "title": "Clinic refurbishment",
        "start_date": "2026-02-01", "end_date": "2026-11-30", "status": "InProgress",
        "estimated_spend_usd_total": 10000, "annual_estimates": {"2026": 10000},
    }).get_json()
    for amount, day in ((15000, "2024-05-01"), (9000, "2025-02-10")):
        client.post("/api/v1/actuals", headers=headers(finance), json={
            "activity_id": activity["id"], "entry_date": day, "amount_usd": amount,
            "category": "Works",
        })
    client.post("/api/v1/actuals", headers=headers(finance), json={
        "activity_id": second["id"], "entry_date": "2026-03-01", "amount_usd": 4000,
    })
    return {"over": activity, "under": second}


class TestKpis:
    def test_totals(self, client, pm, portfolio, headers):
        data = client.get("/api/v1/dashboard/kpis", headers=headers(pm)).get_json()
        assert data["total_estimated_usd"] == 30000
        assert data["total_actual_usd"] == 28000
        assert data["variance_usd"] == -2000
        assert data["activity_count"] == 2
        assert data["objective_count"] == 1
        assert data["over_budget_count"] == 1
        assert data["activities_by_status"]["InProgress"] == 1

    def test_empty_portfolio(self, client, pm, headers):
        data = client.get("/api/v1/dashboard/kpis", headers=headers(pm)).get_json()
        assert data["total_estimated_usd"] == 0
        assert data["variance_percent"] == 0.0

    def test_requires_auth(self, client):
        assert client.get("/api/v1/dashboard/kpis").status_code == 401


class TestSpendByYear:
    def test_years(self, client, pm, portfolio, headers):
        items = client.get("/api/v1/dashboard/spend-by-year", headers=headers(pm)).get_json()["items"]
        by_year = {i["year"]: i for i in items}
        assert sorted(by_year) == [2024, 2025, 2026]
        assert by_year[2024]["estimated_usd"] == 12000
        assert by_year[2024]["actual_usd"] == 15000
        assert by_year[2026]["variance_usd"] == -6000

    def test_year_window(self, client, pm, portfolio, headers):
        items = client.get("/api/v1/dashboard/spend-by-year?start_year=2025&end_year=2025",
                           headers=headers(pm)).get_json()["items"]
        assert [i["year"] for i in items] == [2025]


class TestAlertsGanttAnalysis:
    def test_variance_alerts(self, client, pm, portfolio, headers):
        items = client.get("/api/v1/dashboard/variance-alerts", headers=headers(pm)).get_json()["items"]
        assert len(items) == 1
        assert items[0]["activity_id"] == portfolio["over"]["id"]
        assert items[0]["variance_usd"] == 4000
        assert items[0]["variance_percent"] == 20.0

    def test_gantt_year_filter(self, client, pm, portfolio, headers):
        items = client.get("/api/v1/dashboard/gantt?year=2026", headers=headers(pm)).get_json()["items"]
        assert [i["title"] for i in items] == ["Clinic refurbishment"]
        items = client.get("/api/v1/dashboard/gantt", headers=headers(pm)).get_json()["items"]
        assert [i["title"] for i in items] == ["Borehole drilling", "Clinic refurbishment"]

    def test_spend_analysis(self, client, pm, portfolio, headers):
        data = client.get("/api/v1/dashboard/spend-analysis", headers=headers(pm)).get_json()
        regions = {r["region"]: r for r in data["by_region"]}
        assert set(regions) == {"North-West", "South-West"}
        assert regions["North-West"]["estimated_usd"] == 30000
        assert regions["South-West"]["activity_count"] == 2

        categories = {c["category"]: c for c in data["by_category"]}
        assert categories["Works"]["actual_usd"] == 24000
        assert categories["Uncategorised"]["entry_count"] == 1

    def test_deleted_activity_excluded(self, client, pm, portfolio, headers):
        client.delete(f"/api/v1/activities/{portfolio['under']['id']}", headers=headers(pm))
        data = client.get("/api/v1/dashboard/kpis", headers=headers(pm)).get_json()
        assert data["activity_count"] == 1
        data = client.get("/api/v1/dashboard/spend-analysis", headers=headers(pm)).get_json()
        assert {c["category"] for c in data["by_category"]} == {"Works"}
