"""
Donor Oversight Platform
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
    - EmailLog: outbound email audit log
"""

from datetime import datetime, timezone

from oversight.models import db
from oversight.models.base import iso


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {
    "ApprovalSubmitted",
    "ApprovalDecision",
    "VarianceAlert",
    "ImportComplete",
    "CommentAdded",
    "UserMentioned",
    "ObjectiveCreated",
    "ActivityCreated",
}

# Notification type → User preference column gating email delivery
EMAIL_PREFERENCE_BY_TYPE = {
    "ApprovalSubmitted": "email_approval_submitted",
    "ApprovalDecision": "email_approval_decision",
    "VarianceAlert": "email_variance_alert",
    "ImportComplete": "email_import_complete",
    "CommentAdded": "email_comment",
    "UserMentioned": "email_comment",
}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type = db.Column(db.String(30), nullable=False)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    link = db.Column(db.String(500))

    # Read tracking
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_email_sent = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "link": self.link,
            "is_read": self.is_read,
            "read_at": iso(self.read_at),
            "is_email_sent": self.is_email_sent,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"


class EmailLog(db.Model):
    """
    Outbound email audit log.

    Every email sent through the platform is logged here for audit/debug.
    """

    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    recipient_email = db.Column(db.String(255), nullable=False, index=True)
    recipient_name = db.Column(db.String(150), nullable=True)
    subject = db.Column(db.String(500), nullable=False)
    template_name = db.Column(db.String(100), nullable=True,
                              comment="Email template used")
    status = db.Column(db.String(20), default="queued",
                       comment="queued, sent, failed, skipped")
    error_message = db.Column(db.Text, nullable=True)
    notification_id = db.Column(db.Integer, nullable=True,
                                comment="Related notification ID if applicable")

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
            "subject": self.subject,
            "template_name": self.template_name,
            "status": self.status,
            "error_message": self.error_message,
            "notification_id": self.notification_id,
            "sent_at": iso(self.sent_at),
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<EmailLog {self.id}: {self.recipient_email} [{self.status}]>"
