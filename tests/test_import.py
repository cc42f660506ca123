"""
Excel activity import tests.

Workbooks are built in memory with openpyxl and posted as multipart uploads.
"""

import io

from openpyxl import Workbook

from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.audit import AuditLog
from oversight.models.notification import Notification
from oversight.models.objective import InvestmentObjective

COLUMNS = ["objectiveId", "title", "startDate", "endDate", "status", "progressPercent",
           "lead", "estimatedSpendUsd", "estimate2024", "estimate2025"]


def _workbook(rows, columns=COLUMNS) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(columns)
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _post(client, user, headers, content, url="/api/v1/import/activities", filename="activities.xlsx"):
    return client.post(url, headers=headers(user), content_type="multipart/form-data",
                       data={"file": (io.BytesIO(content), filename)})


GOOD_ROWS = [
    ["OBJ-0001", "Solar pumps", "2024-02-01", "2025-03-31", "InProgress", 10, "Ada Obi", 30000, 10000, 20000],
    ["1", "Water committee training", "2024-06-01", "2024-09-30", None, None, None, None, 4500, None],
]


class TestPreview:
    def test_valid_file(self, client, admin, objective, headers):
        res = _post(client, admin, headers, _workbook(GOOD_ROWS), "/api/v1/import/activities/preview")
        assert res.status_code == 200
        data = res.get_json()
        assert data["success"] is True
        assert data["success_count"] == 2
        assert data["preview"][0]["objective_code"] == "OBJ-0001"
        assert data["preview"][1]["status"] == "Planned"
        assert data["preview"][1]["estimated_spend_usd_total"] == 4500
        assert Activity.query.count() == 0

    def test_row_errors_use_excel_row_numbers(self, client, admin, objective, headers):
        rows = [
            GOOD_ROWS[0],
            ["OBJ-0099", "", "2024-13-01", "2024-01-01", "Dreaming", 150, None, 100, 50, 60],
        ]
        data = _post(client, admin, headers, _workbook(rows), "/api/v1/import/activities/preview").get_json()
        assert data["success"] is False
        assert data["success_count"] == 1
        fields = {(e["row"], e["field"]) for e in data["errors"]}
        assert {(3, "objectiveId"), (3, "title"), (3, "startDate"), (3, "status"),
                (3, "progressPercent"), (3, "estimatedSpendUsd")} <= fields

    def test_estimate_sum_mismatch(self, client, admin, objective, headers):
        rows = [["OBJ-0001", "Mismatch", None, None, None, None, None, 1000, 400, 400]]
        data = _post(client, admin, headers, _workbook(rows), "/api/v1/import/activities/preview").get_json()
        assert data["errors"][0]["field"] == "estimatedSpendUsd"
        assert "doesn't match" in data["errors"][0]["message"]

    def test_unreadable_file(self, client, admin, headers):
        data = _post(client, admin, headers, b"not a workbook", "/api/v1/import/activities/preview").get_json()
        assert data["errors"] == [{"row": 0, "field": "file", "message": "Failed to parse Excel file"}]

    def test_empty_sheet(self, client, admin, headers):
        data = _post(client, admin, headers, _workbook([]), "/api/v1/import/activities/preview").get_json()
        assert data["errors"][0]["message"] == "The first sheet contains no data rows"


class TestImport:
    def test_creates_all_rows(self, client, admin, objective, headers):
        res = _post(client, admin, headers, _workbook(GOOD_ROWS))
        assert res.status_code == 201
        data = res.get_json()
        assert [c["title"] for c in data["created"]] == ["Solar pumps", "Water committee training"]

        row = db.session.get(InvestmentObjective, objective["id"])
        assert float(row.computed_estimated_spend_usd) == 34500
        assert AuditLog.query.filter_by(action="Import").count() == 2
        note = Notification.query.filter_by(user_id=admin.id, type="ImportComplete").one()
        assert note.message == "2 activities imported successfully"

    def test_all_or_nothing(self, client, admin, objective, headers):
        rows = [GOOD_ROWS[0], ["OBJ-0001", None, None, None, None, None, None, 10, None, None]]
        res = _post(client, admin, headers, _workbook(rows))
        assert res.status_code == 422
        assert res.get_json()["created"] == []
        assert Activity.query.count() == 0

    def test_admin_only(self, client, pm, objective, headers):
        assert _post(client, pm, headers, _workbook(GOOD_ROWS)).status_code == 403

    def test_file_required(self, client, admin, headers):
        res = client.post("/api/v1/import/activities", headers=headers(admin),
                          content_type="multipart/form-data", data={})
        assert res.status_code == 400
        assert res.get_json()["error"] == "file is required"

    def test_extension_checked(self, client, admin, headers):
        res = _post(client, admin, headers, b"a,b", filename="activities.csv")
        assert res.status_code == 400

    def test_template_round_trips_through_preview(self, client, admin, objective, headers):
        template = client.get("/api/v1/export/import-template", headers=headers(admin)).data
        data = _post(client, admin, headers, template, "/api/v1/import/activities/preview").get_json()
        assert data["success"] is True
        assert data["success_count"] == 2
