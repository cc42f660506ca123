"""
Donor Oversight Platform
Notification Service.

Central service for creating and querying in-app notifications, with
email fan-out gated by the recipient's preferences and the global
``emailNotificationsEnabled`` setting.

Create helpers flush only; the calling service owns the commit so a
notification never outlives a rolled-back business change.
"""

import logging
from datetime import datetime, timezone

from oversight.core.exceptions import NotFoundError
from oversight.models import db
from oversight.models.notification import EMAIL_PREFERENCE_BY_TYPE, Notification
from oversight.models.user import User
from oversight.services.email_service import EmailService
from oversight.services.settings_service import get_setting

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def email_allowed(user: User, notification_type: str) -> bool:
        pref = EMAIL_PREFERENCE_BY_TYPE.get(notification_type)
        if pref is None or not user.email:
            return False
        if not get_setting("emailNotificationsEnabled", True):
            return False
        return bool(getattr(user, pref, False))

    @classmethod
    def create(cls, *, user_id, type, title, message="", link=None,
               email_template="notification", email_context=None):
        """
        Create one notification and send the matching email when allowed.

        Returns:
            The Notification instance (flushed, not committed), or None
            when the recipient does not exist or is inactive.
        """
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            return None

        notif = Notification(user_id=user_id, type=type, title=title,
                             message=message or "", link=link)
        db.session.add(notif)
        db.session.flush()

        if cls.email_allowed(user, type):
            context = {"title": title, "message": message, "link": link}
            context.update(email_context or {})
            log = EmailService.send_from_template(
                to_email=user.email,
                to_name=user.full_name,
                template_name=email_template,
                context=context,
                notification_id=notif.id,
            )
            notif.is_email_sent = bool(log and log.status == "sent")

        return notif

    @classmethod
    def notify_users(cls, user_ids, **kwargs):
        """Create the same notification for each distinct user id."""
        created = []
        for uid in dict.fromkeys(user_ids):
            notif = cls.create(user_id=uid, **kwargs)
            if notif is not None:
                created.append(notif)
        return created

    @staticmethod
    def user_ids_with_roles(roles, exclude_user_id=None):
        """Active user ids holding any of *roles*."""
        q = User.query.filter(User.role.in_(list(roles)), User.is_active.is_(True))
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        return [u.id for u in q.order_by(User.id).all()]

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=50):
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        limit = min(max(int(limit or 50), 1), 200)
        return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    # ── Update / delete ───────────────────────────────────────────────────

    @staticmethod
    def _get_own(user_id, notification_id):
        notif = db.session.get(Notification, notification_id)
        if notif is None or notif.user_id != user_id:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        return notif

    @classmethod
    def mark_read(cls, user_id, notification_id):
        notif = cls._get_own(user_id, notification_id)
        if not notif.is_read:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(user_id):
        now = datetime.now(timezone.utc)
        count = (
            Notification.query
            .filter_by(user_id=user_id, is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session=False)
        )
        db.session.commit()
        return count

    @classmethod
    def delete(cls, user_id, notification_id):
        notif = cls._get_own(user_id, notification_id)
        db.session.delete(notif)
        db.session.commit()
