"""Settings API: admin writes, masking, validation and the SMTP check."""

import pytest

from oversight.models.notification import EmailLog
from oversight.models.setting import Setting
from oversight.services import email_service, settings_service


class FakeSMTP:
    """Stands in for smtplib.SMTP; records sent messages."""

    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def noop(self):
        pass

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


@pytest.fixture()
def fake_smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(email_service.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


class TestReadWrite:
    def test_defaults_listed_for_admin(self, client, admin, headers):
        data = client.get("/api/v1/settings", headers=headers(admin)).get_json()
        assert data["approvalThresholdUsd"] == 10000
        assert data["approvalThresholdPercent"] == 20
        assert data["emailNotificationsEnabled"] is True

    def test_non_admin_cannot_list_or_write(self, client, pm, headers):
        assert client.get("/api/v1/settings", headers=headers(pm)).status_code == 403
        res = client.put("/api/v1/settings/approvalThresholdUsd", headers=headers(pm), json={"value": 1})
        assert res.status_code == 403

    def test_any_user_can_read_one(self, client, admin, pm, headers):
        client.put("/api/v1/settings/approvalThresholdUsd", headers=headers(admin), json={"value": 7500})
        res = client.get("/api/v1/settings/approvalThresholdUsd", headers=headers(pm))
        assert res.get_json() == {"key": "approvalThresholdUsd", "value": 7500}

    def test_unknown_key_404(self, client, pm, headers):
        assert client.get("/api/v1/settings/noSuchKey", headers=headers(pm)).status_code == 404

    def test_put_requires_value(self, client, admin, headers):
        res = client.put("/api/v1/settings/smtpHost", headers=headers(admin), json={})
        assert res.status_code == 400

    def test_write_invalidates_cache(self, client, admin, headers):
        assert settings_service.approval_thresholds() == (5000.0, 10.0)
        client.put("/api/v1/settings/approvalThresholdPercent", headers=headers(admin), json={"value": 15})
        assert settings_service.approval_thresholds() == (5000.0, 15.0)

    def test_bulk_update(self, client, admin, headers):
        res = client.post("/api/v1/settings", headers=headers(admin),
                          json={"smtpHost": "mail.oversight.org", "smtpPort": 2525})
        assert res.status_code == 200
        assert res.get_json()["smtpPort"] == 2525
        assert Setting.query.count() == 2

    def test_delete(self, client, admin, headers):
        client.put("/api/v1/settings/smtpHost", headers=headers(admin), json={"value": "mail"})
        res = client.delete("/api/v1/settings/smtpHost", headers=headers(admin))
        assert res.status_code == 200
        assert client.delete("/api/v1/settings/smtpHost", headers=headers(admin)).status_code == 404

    def test_seed_is_idempotent(self, client, admin, headers):
        first = client.post("/api/v1/settings/seed", headers=headers(admin)).get_json()["created"]
        again = client.post("/api/v1/settings/seed", headers=headers(admin)).get_json()["created"]
        assert first == len(settings_service.DEFAULT_SETTINGS)
        assert again == 0


class TestValidationAndSecrets:
    @pytest.mark.parametrize("key,value", [
        ("approvalThresholdUsd", -1),
        ("approvalThresholdPercent", 150),
        ("approvalThresholdUsd", "lots"),
        ("smtpPort", 70000),
        ("emailNotificationsEnabled", "yes"),
    ])
    def test_rejects_invalid_values(self, client, admin, headers, key, value):
        res = client.put(f"/api/v1/settings/{key}", headers=headers(admin), json={"value": value})
        assert res.status_code == 422

    def test_smtp_password_masked(self, client, admin, headers):
        res = client.put("/api/v1/settings/smtpPassword", headers=headers(admin), json={"value": "s3cret"})
        assert res.get_json()["value"] == settings_service.MASK
        listed = client.get("/api/v1/settings", headers=headers(admin)).get_json()
        assert listed["smtpPassword"] == settings_service.MASK
        assert settings_service.get_setting("smtpPassword") == "s3cret"

    def test_secret_never_written_to_audit(self, client, admin, auditor, headers):
        client.put("/api/v1/settings/smtpPassword", headers=headers(admin), json={"value": "s3cret"})
        res = client.get("/api/v1/audit?object_type=Setting", headers=headers(auditor))
        assert "s3cret" not in res.get_data(as_text=True)


class TestEmailCheck:
    def test_unconfigured_host_fails(self, client, admin, headers):
        res = client.post("/api/v1/settings/test-email", headers=headers(admin), json={})
        assert res.status_code == 502
        assert res.get_json()["success"] is False

    def test_connection_and_test_send(self, client, admin, headers, fake_smtp):
        client.put("/api/v1/settings/smtpHost", headers=headers(admin), json={"value": "mail.oversight.org"})
        res = client.post("/api/v1/settings/test-email", headers=headers(admin),
                          json={"to": "ops@oversight.org"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["success"] is True
        assert data["email_status"] == "sent"
        assert fake_smtp.sent[0]["To"] == "ops@oversight.org"
        assert EmailLog.query.one().status == "sent"

    def test_smtp_failure_logged(self, client, admin, pm, headers, monkeypatch):
        class BrokenSMTP(FakeSMTP):
            def send_message(self, msg):
                raise OSError("connection reset")

        monkeypatch.setattr(email_service.smtplib, "SMTP", BrokenSMTP)
        client.put("/api/v1/settings/smtpHost", headers=headers(admin), json={"value": "mail.oversight.org"})
        log = email_service.EmailService.send(to_email=pm.email, subject="Hi", html_body="<p>Hi</p>")
        assert log.status == "failed"
        assert "connection reset" in log.error_message
