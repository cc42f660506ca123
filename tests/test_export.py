"""Excel export tests: workbooks are loaded back with openpyxl and checked."""

import io

from openpyxl import load_workbook

from oversight.services.export_service import ACTIVITY_COLUMNS, IMPORT_TEMPLATE_COLUMNS

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _sheet(res):
    assert res.status_code == 200, res.get_data(as_text=True)
    return load_workbook(io.BytesIO(res.data)).active


def _column(ws, header):
    headers = [c.value for c in ws[1]]
    return headers.index(header)


class TestActivityExport:
    def test_xlsx(self, client, pm, activity, headers):
        res = client.get("/api/v1/export/activities", headers=headers(pm))
        assert res.mimetype == XLSX
        disposition = res.headers["Content-Disposition"]
        assert 'filename="activities-' in disposition and disposition.endswith('.xlsx"')

        ws = _sheet(res)
        assert [c.value for c in ws[1]] == ACTIVITY_COLUMNS
        row = [c.value for c in ws[2]]
        assert row[0] == "ACT-0001"
        assert row[_column(ws, "Title")] == "Borehole drilling"
        assert row[_column(ws, "Regions")] == "North-West, South-West"
        assert row[_column(ws, "Estimate 2024")] == 12000
        assert ws.max_row == 2

    def test_filters_applied(self, client, pm, activity, headers):
        ws = _sheet(client.get("/api/v1/export/activities?status=Completed", headers=headers(pm)))
        assert ws.max_row == 1

    def test_pdf_format(self, client, pm, activity, headers):
        res = client.get("/api/v1/export/activities?format=pdf", headers=headers(pm))
        assert res.status_code == 200
        assert res.mimetype == "application/pdf"
        assert res.data.startswith(b"%PDF")

    def test_unsupported_format(self, client, pm, headers):
        res = client.get("/api/v1/export/activities?format=docx", headers=headers(pm))
        assert res.status_code == 400
        assert "Supported values: xlsx, pdf" in res.get_json()["error"]

    def test_requires_auth(self, client):
        assert client.get("/api/v1/export/activities").status_code == 401


class TestOtherWorkbooks:
    def test_actuals(self, client, finance, activity, headers):
        client.post("/api/v1/actuals", headers=headers(finance), json={
            "activity_id": activity["id"], "entry_date": "2024-04-01", "amount_usd": 1250.5,
            "category": "Materials",
        })
        ws = _sheet(client.get(f"/api/v1/export/actuals?activity_id={activity['id']}",
                               headers=headers(finance)))
        row = [c.value for c in ws[2]]
        assert row[2] == "ACT-0001"
        assert row[4] == "2024-04-01"
        assert row[5] == 1250.5
        assert row[6] == "Materials"

    def test_actuals_pdf_not_supported(self, client, finance, headers):
        res = client.get("/api/v1/export/actuals?format=pdf", headers=headers(finance))
        assert res.status_code == 400

    def test_financial_summary(self, client, finance, activity, headers):
        ws = _sheet(client.get("/api/v1/export/financial-summary", headers=headers(finance)))
        assert ws["A1"].value == "Financial Summary Report"
        assert ws["A5"].value == "Objective"
        assert ws["F5"].value == 20000
        assert ws["A6"].value == "Activity"
        assert ws["I6"].value == -100.0

    def test_import_template(self, client, pm, headers):
        res = client.get("/api/v1/export/import-template", headers=headers(pm))
        assert "activity-import-template" in res.headers["Content-Disposition"]
        ws = _sheet(res)
        assert [c.value for c in ws[1]] == IMPORT_TEMPLATE_COLUMNS
        assert ws.max_row == 3
