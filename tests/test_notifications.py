"""In-app notification endpoints and email fan-out rules."""

import pytest

from oversight.models import db
from oversight.models.notification import EmailLog
from oversight.services.notification_service import NotificationService
from oversight.services.settings_service import set_setting


@pytest.fixture()
def inbox(pm):
    """Three notifications for the PM, one already read."""
    created = [
        NotificationService.create(user_id=pm.id, type="CommentAdded", title=f"Comment {i}")
        for i in range(3)
    ]
    created[0].mark_read()
    db.session.commit()
    return [n.id for n in created]


class TestInbox:
    def test_list_newest_first(self, client, pm, inbox, headers):
        res = client.get("/api/v1/notifications", headers=headers(pm))
        data = res.get_json()
        assert [n["id"] for n in data["items"]] == list(reversed(inbox))
        assert data["unread_count"] == 2

    def test_unread_only(self, client, pm, inbox, headers):
        res = client.get("/api/v1/notifications?unread_only=true", headers=headers(pm))
        assert len(res.get_json()["items"]) == 2

    def test_unread_count(self, client, pm, inbox, headers):
        res = client.get("/api/v1/notifications/unread-count", headers=headers(pm))
        assert res.get_json() == {"unread_count": 2}

    def test_mark_read(self, client, pm, inbox, headers):
        res = client.put(f"/api/v1/notifications/{inbox[1]}/read", headers=headers(pm))
        assert res.status_code == 200
        assert res.get_json()["is_read"] is True
        assert res.get_json()["read_at"] is not None

    def test_mark_all_read(self, client, pm, inbox, headers):
        res = client.put("/api/v1/notifications/read-all", headers=headers(pm))
        assert res.get_json() == {"updated": 2}
        assert client.get("/api/v1/notifications/unread-count",
                          headers=headers(pm)).get_json()["unread_count"] == 0

    def test_delete(self, client, pm, inbox, headers):
        res = client.delete(f"/api/v1/notifications/{inbox[0]}", headers=headers(pm))
        assert res.get_json() == {"deleted": True, "id": inbox[0]}
        assert len(client.get("/api/v1/notifications", headers=headers(pm)).get_json()["items"]) == 2

    def test_other_users_notifications_are_hidden(self, client, finance, inbox, headers):
        assert client.put(f"/api/v1/notifications/{inbox[1]}/read", headers=headers(finance)).status_code == 404
        assert client.delete(f"/api/v1/notifications/{inbox[1]}", headers=headers(finance)).status_code == 404
        assert client.get("/api/v1/notifications", headers=headers(finance)).get_json()["items"] == []

    def test_requires_auth(self, client):
        assert client.get("/api/v1/notifications").status_code == 401


class TestEmailFanOut:
    def test_email_logged_when_preference_on(self, pm):
        NotificationService.create(user_id=pm.id, type="VarianceAlert", title="Over budget")
        db.session.commit()
        log = EmailLog.query.one()
        assert log.recipient_email == pm.email
        assert log.status == "skipped"

    def test_preference_off_suppresses_email(self, make_user):
        user = make_user("Finance", email_variance_alert=False)
        NotificationService.create(user_id=user.id, type="VarianceAlert", title="Over budget")
        db.session.commit()
        assert EmailLog.query.count() == 0

    def test_global_switch_off_suppresses_email(self, pm):
        set_setting("emailNotificationsEnabled", False)
        NotificationService.create(user_id=pm.id, type="ApprovalDecision", title="Approved")
        db.session.commit()
        assert EmailLog.query.count() == 0

    def test_types_without_preference_never_email(self, pm):
        NotificationService.create(user_id=pm.id, type="ActivityCreated", title="New activity")
        db.session.commit()
        assert EmailLog.query.count() == 0

    def test_inactive_recipient_skipped(self, make_user):
        user = make_user("Finance", is_active=False)
        assert NotificationService.create(user_id=user.id, type="CommentAdded", title="x") is None

    def test_notify_users_deduplicates(self, pm, finance):
        created = NotificationService.notify_users([pm.id, finance.id, pm.id],
                                                   type="ImportComplete", title="Done")
        assert len(created) == 2
