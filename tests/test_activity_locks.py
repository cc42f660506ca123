"""
Activity edit-lock tests.

A lock is valid only while ``locked_by_id`` is set AND ``locked_at`` is
within the TTL.  Expired locks must be cleared before any write.
"""

from datetime import timedelta

import pytest

from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.audit import AuditLog
from oversight.models.base import utcnow
from oversight.services.activity_service import cleanup_expired_locks


def _set_lock(activity_id, user_id, age_minutes):
    row = db.session.get(Activity, activity_id)
    row.locked_by_id = user_id
    row.locked_at = utcnow() - timedelta(minutes=age_minutes)
    db.session.commit()


class TestAcquireAndRelease:
    def test_lock_and_status(self, client, pm, activity, headers):
        res = client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        assert res.status_code == 200
        assert res.get_json()["locked_by"]["id"] == pm.id

        status = client.get(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm)).get_json()
        assert status["is_locked"] is True
        assert status["expires_at"] is not None

        assert AuditLog.query.filter_by(action="Lock").count() == 1

    def test_holder_can_relock(self, client, pm, activity, headers):
        client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        res = client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        assert res.status_code == 200

    def test_second_user_gets_409(self, client, pm, make_user, activity, headers):
        other = make_user("ProjectManager", full_name="Efe Ojo")
        client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        res = client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(other))
        assert res.status_code == 409
        assert res.get_json()["details"]["locked_by"]["id"] == pm.id

    def test_holder_unlocks(self, client, pm, activity, headers):
        client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        res = client.delete(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        assert res.status_code == 200
        assert res.get_json()["is_locked"] is False

    def test_other_user_cannot_unlock(self, client, pm, make_user, activity, headers):
        other = make_user("ProjectManager")
        client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        res = client.delete(f"/api/v1/activities/{activity['id']}/lock", headers=headers(other))
        assert res.status_code == 403

    def test_admin_force_unlock(self, client, pm, admin, activity, headers):
        client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        res = client.delete(f"/api/v1/activities/{activity['id']}/lock", headers=headers(admin))
        assert res.status_code == 200
        log = AuditLog.query.filter_by(action="Unlock").one()
        assert log.comment == "Lock released by administrator"


class TestLockedWrites:
    def test_update_blocked_by_valid_lock(self, client, pm, make_user, activity, headers):
        other = make_user("ProjectManager")
        _set_lock(activity["id"], other.id, age_minutes=5)
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                         json={"lead": "Blocked"})
        assert res.status_code == 409

    def test_admin_update_still_respects_lock(self, client, admin, pm, activity, headers):
        _set_lock(activity["id"], pm.id, age_minutes=5)
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(admin),
                         json={"lead": "Admin"})
        assert res.status_code == 409

    def test_holder_can_update(self, client, pm, activity, headers):
        client.post(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm))
        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                         json={"lead": "Holder"})
        assert res.status_code == 200

    def test_stale_lock_cleared_on_write(self, client, pm, make_user, activity, headers):
        other = make_user("ProjectManager")
        _set_lock(activity["id"], other.id, age_minutes=31)

        res = client.put(f"/api/v1/activities/{activity['id']}", headers=headers(pm),
                         json={"lead": "After expiry"})
        assert res.status_code == 200
        assert res.get_json()["lock"]["is_locked"] is False

        row = db.session.get(Activity, activity["id"])
        assert row.locked_by_id is None
        assert row.locked_at is None

    def test_stale_lock_cleared_on_actual_write(self, client, pm, finance, activity, headers):
        _set_lock(activity["id"], pm.id, age_minutes=45)
        res = client.post("/api/v1/actuals", headers=headers(finance), json={
            "activity_id": activity["id"], "entry_date": "2024-03-01", "amount_usd": 100,
        })
        assert res.status_code == 201
        assert db.session.get(Activity, activity["id"]).locked_by_id is None

    def test_half_populated_lock_is_stale(self, client, pm, activity, headers):
        row = db.session.get(Activity, activity["id"])
        row.locked_at = utcnow()
        db.session.commit()
        status = client.get(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm)).get_json()
        assert status["is_locked"] is False

    def test_stale_lock_not_reported_as_locked(self, client, pm, activity, headers):
        _set_lock(activity["id"], pm.id, age_minutes=30)
        status = client.get(f"/api/v1/activities/{activity['id']}/lock", headers=headers(pm)).get_json()
        assert status["is_locked"] is False


class TestCleanup:
    def test_cleanup_expired_locks(self, pm, activity):
        _set_lock(activity["id"], pm.id, age_minutes=60)
        assert cleanup_expired_locks() == 1
        assert db.session.get(Activity, activity["id"]).locked_by_id is None

    def test_cleanup_keeps_valid_locks(self, pm, activity):
        _set_lock(activity["id"], pm.id, age_minutes=1)
        assert cleanup_expired_locks() == 0
        assert db.session.get(Activity, activity["id"]).locked_by_id == pm.id


class TestTtlBoundary:
    """A lock is stale once ``now - locked_at >= TTL``."""

    @pytest.mark.parametrize("age,valid", [
        (timedelta(minutes=30) - timedelta(microseconds=1), True),
        (timedelta(minutes=30), False),
        (timedelta(minutes=30, microseconds=1), False),
    ])
    def test_lock_validity_at_ttl(self, pm, activity, age, valid):
        now = utcnow()
        row = db.session.get(Activity, activity["id"])
        row.locked_by_id = pm.id
        row.locked_at = now - age
        assert row.has_valid_lock(now) is valid
        assert row.has_stale_lock(now) is not valid
        assert row.is_locked_by_other(pm.id + 1, now) is valid

    def test_cleanup_clears_lock_exactly_ttl_old(self, pm, activity):
        _set_lock(activity["id"], pm.id, age_minutes=30)
        assert cleanup_expired_locks() == 1
        assert db.session.get(Activity, activity["id"]).locked_at is None
