"""Activity comment tests: threading, mentions and author-only edits."""

import pytest

from oversight.models.notification import Notification


def _post(client, user, headers, activity_id, content, **extra):
    return client.post(f"/api/v1/activities/{activity_id}/comments",
                       headers=headers(user), json={"content": content, **extra})


class TestCreate:
    def test_create_and_list(self, client, pm, finance, activity, headers):
        res = _post(client, finance, headers, activity["id"], "  Please attach the invoice.  ")
        assert res.status_code == 201
        data = res.get_json()
        assert data["content"] == "Please attach the invoice."
        assert data["user"]["full_name"] == "Bola Ade"
        assert data["parent_id"] is None

        res = client.get(f"/api/v1/activities/{activity['id']}/comments", headers=headers(pm))
        assert res.get_json()["total"] == 1

    def test_empty_content_rejected(self, client, pm, activity, headers):
        res = _post(client, pm, headers, activity["id"], "   ")
        assert res.status_code == 422
        assert res.get_json()["details"]["content"] == "required"

    def test_unknown_activity(self, client, pm, headers):
        assert _post(client, pm, headers, 999, "Hello").status_code == 404

    def test_reply_must_belong_to_same_activity(self, client, pm, objective, activity, headers):
        other = client.post("/api/v1/activities", headers=headers(pm), json={
            "objective_id": objective["id"], "title": "Nurse training",
            "start_date": "2024-03-01", "end_date": "2024-12-31",
            "estimated_spend_usd_total": 5000,
        }).get_json()
        parent = _post(client, pm, headers, other["id"], "On the other activity").get_json()

        res = _post(client, pm, headers, activity["id"], "Reply", parent_id=parent["id"])
        assert res.status_code == 422
        assert res.get_json()["details"]["parent_id"] == "not found"

    def test_reply(self, client, pm, finance, activity, headers):
        parent = _post(client, finance, headers, activity["id"], "Question").get_json()
        res = _post(client, pm, headers, activity["id"], "Answer", parent_id=parent["id"])
        assert res.status_code == 201
        assert res.get_json()["parent_id"] == parent["id"]


class TestCommentNotifications:
    def test_activity_creator_notified(self, client, pm, finance, activity, headers):
        _post(client, finance, headers, activity["id"], "Looks good")
        note = Notification.query.filter_by(user_id=pm.id, type="CommentAdded").one()
        assert note.message == 'Bola Ade commented on "Borehole drilling"'

    def test_own_comment_does_not_notify_self(self, client, pm, activity, headers):
        _post(client, pm, headers, activity["id"], "Note to self")
        assert Notification.query.filter_by(user_id=pm.id, type="CommentAdded").count() == 0

    def test_parent_author_notified_once(self, client, pm, finance, committee, activity, headers):
        parent = _post(client, finance, headers, activity["id"], "Question").get_json()
        _post(client, committee, headers, activity["id"], "Reply", parent_id=parent["id"])
        assert Notification.query.filter_by(user_id=finance.id, type="CommentAdded").count() == 1
        assert Notification.query.filter_by(user_id=pm.id, type="CommentAdded").count() == 2

    def test_mentions(self, client, pm, finance, committee, activity, headers):
        _post(client, pm, headers, activity["id"], "@bola ade and @Chidi Eze please review")
        mentioned = {n.user_id for n in Notification.query.filter_by(type="UserMentioned").all()}
        assert mentioned == {finance.id, committee.id}

    @pytest.mark.parametrize("content", [
        "Please review, @Bola Ade.",
        "@Bola Ade, can you check the receipts?",
        "Thanks @Bola Ade!",
        "Over to finance (@Bola Ade)",
    ])
    def test_mention_followed_by_punctuation(self, client, pm, finance, activity, headers, content):
        _post(client, pm, headers, activity["id"], content)
        mentioned = [n.user_id for n in Notification.query.filter_by(type="UserMentioned").all()]
        assert mentioned == [finance.id]

    def test_mention_of_inactive_user_ignored(self, client, pm, make_user, activity, headers):
        make_user("Finance", full_name="Gone Person", is_active=False)
        _post(client, pm, headers, activity["id"], "cc @Gone Person")
        assert Notification.query.filter_by(type="UserMentioned").count() == 0


class TestEditAndDelete:
    def test_author_can_edit(self, client, pm, activity, headers):
        comment = _post(client, pm, headers, activity["id"], "Draft").get_json()
        res = client.put(f"/api/v1/comments/{comment['id']}", headers=headers(pm),
                         json={"content": "Final"})
        assert res.status_code == 200
        assert res.get_json()["content"] == "Final"

    def test_other_user_cannot_edit_or_delete(self, client, pm, finance, activity, headers):
        comment = _post(client, pm, headers, activity["id"], "Mine").get_json()
        res = client.put(f"/api/v1/comments/{comment['id']}", headers=headers(finance),
                         json={"content": "Hijacked"})
        assert res.status_code == 403
        assert client.delete(f"/api/v1/comments/{comment['id']}", headers=headers(finance)).status_code == 403

    def test_admin_can_delete(self, client, pm, admin, activity, headers):
        comment = _post(client, pm, headers, activity["id"], "Spam").get_json()
        res = client.delete(f"/api/v1/comments/{comment['id']}", headers=headers(admin))
        assert res.status_code == 200

        res = client.get(f"/api/v1/activities/{activity['id']}/comments", headers=headers(pm))
        assert res.get_json()["items"] == []
        res = client.put(f"/api/v1/comments/{comment['id']}", headers=headers(pm), json={"content": "x"})
        assert res.status_code == 404
