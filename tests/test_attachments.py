"""Attachment upload / download tests (local and S3 storage backends)."""

import io

import pytest

from oversight.models import db
from oversight.models.actual import Attachment


@pytest.fixture()
def actual(client, finance, activity, headers):
    res = client.post("/api/v1/actuals", headers=headers(finance), json={
        "activity_id": activity["id"], "entry_date": "2024-02-01", "amount_usd": 500,
    })
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture(autouse=True)
def local_storage(app, tmp_path, monkeypatch):
    monkeypatch.setitem(app.config, "STORAGE_BACKEND", "local")
    monkeypatch.setitem(app.config, "STORAGE_LOCAL_ROOT", str(tmp_path))
    return tmp_path


def _upload(client, user, headers, actual_id, name="receipt.pdf", data=b"%PDF-1.4 test"):
    return client.post(
        "/api/v1/attachments",
        headers=headers(user),
        data={"actual_id": str(actual_id), "file": (io.BytesIO(data), name)},
        content_type="multipart/form-data",
    )


class TestUpload:
    def test_upload_and_list(self, client, finance, actual, headers, local_storage):
        res = _upload(client, finance, headers, actual["id"])
        assert res.status_code == 201
        data = res.get_json()
        assert data["original_file_name"] == "receipt.pdf"
        assert data["virus_scan_status"] == "Pending"
        assert data["file_size"] == len(b"%PDF-1.4 test")

        stored = db.session.get(Attachment, data["id"])
        assert stored.storage_key.startswith("attachments/")
        assert (local_storage / stored.storage_key).exists()

        listing = client.get(f"/api/v1/actuals/{actual['id']}/attachments", headers=headers(finance))
        assert listing.get_json()["total"] == 1

    def test_disallowed_extension(self, client, finance, actual, headers):
        res = _upload(client, finance, headers, actual["id"], name="payload.exe")
        assert res.status_code == 422

    def test_empty_file(self, client, finance, actual, headers):
        res = _upload(client, finance, headers, actual["id"], data=b"")
        assert res.status_code == 422

    def test_missing_actual_id(self, client, finance, headers):
        res = client.post("/api/v1/attachments", headers=headers(finance),
                          data={"file": (io.BytesIO(b"x"), "a.txt")},
                          content_type="multipart/form-data")
        assert res.status_code == 400


class TestDownloadAndDelete:
    def test_local_download_streams_file(self, client, finance, actual, headers):
        att = _upload(client, finance, headers, actual["id"], name="invoice.txt", data=b"hello").get_json()
        res = client.get(f"/api/v1/attachments/{att['id']}/download", headers=headers(finance))
        assert res.status_code == 200
        assert res.data == b"hello"
        assert "invoice.txt" in res.headers["Content-Disposition"]

    def test_infected_file_refused(self, client, finance, actual, headers):
        att = _upload(client, finance, headers, actual["id"]).get_json()
        row = db.session.get(Attachment, att["id"])
        row.virus_scan_status = "Infected"
        db.session.commit()
        res = client.get(f"/api/v1/attachments/{att['id']}/download", headers=headers(finance))
        assert res.status_code == 422

    def test_s3_download_returns_presigned_url(self, app, client, finance, actual, headers, monkeypatch):
        att = _upload(client, finance, headers, actual["id"]).get_json()
        monkeypatch.setitem(app.config, "STORAGE_BACKEND", "s3")
        monkeypatch.setitem(app.config, "S3_ENDPOINT", "http://localhost:9000")
        monkeypatch.setitem(app.config, "S3_REGION", "us-east-1")
        monkeypatch.setitem(app.config, "S3_BUCKET", "oversight-test")
        monkeypatch.setitem(app.config, "S3_ACCESS_KEY_ID", "test-key")
        monkeypatch.setitem(app.config, "S3_SECRET_ACCESS_KEY", "test-secret")

        res = client.get(f"/api/v1/attachments/{att['id']}/download", headers=headers(finance))
        assert res.status_code == 200
        data = res.get_json()
        assert data["expires_in"] == 3600
        assert "oversight-test" in data["url"]

    def test_delete_is_soft(self, client, finance, actual, headers):
        att = _upload(client, finance, headers, actual["id"]).get_json()
        res = client.delete(f"/api/v1/attachments/{att['id']}", headers=headers(finance))
        assert res.status_code == 200
        assert db.session.get(Attachment, att["id"]).deleted_at is not None
        listing = client.get(f"/api/v1/actuals/{actual['id']}/attachments", headers=headers(finance))
        assert listing.get_json()["total"] == 0
