"""
User Models — users, refresh-token sessions.

Each user carries exactly one role (Admin, ProjectManager, Finance,
CommitteeMember, Auditor) and a set of email notification preferences.
"""

from datetime import datetime, timezone

from oversight.constants import ROLE_ADMIN
from oversight.models import db
from oversight.models.base import iso


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(30), nullable=False, default="ProjectManager")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime(timezone=True))

    # Email notification preferences
    email_approval_submitted = db.Column(db.Boolean, default=True, nullable=False)
    email_approval_decision = db.Column(db.Boolean, default=True, nullable=False)
    email_variance_alert = db.Column(db.Boolean, default=True, nullable=False)
    email_import_complete = db.Column(db.Boolean, default=True, nullable=False)
    email_comment = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    sessions = db.relationship("Session", back_populates="user", lazy="dynamic", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def preferences(self) -> dict:
        return {name: getattr(self, name) for name in PREFERENCE_FIELDS}

    def to_dict(self, include_preferences=False):
        d = {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "last_login_at": iso(self.last_login_at),
            "created_at": iso(self.created_at),
        }
        if include_preferences:
            d["preferences"] = self.preferences
        return d

    def to_summary(self):
        """Compact form embedded in other resources."""
        return {"id": self.id, "full_name": self.full_name, "role": self.role}

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"


PREFERENCE_FIELDS = (
    "email_approval_submitted",
    "email_approval_decision",
    "email_variance_alert",
    "email_import_complete",
    "email_comment",
)


# ═══════════════════════════════════════════════════════════════
# 2. SESSIONS (refresh-token tracking)
# ═══════════════════════════════════════════════════════════════
class Session(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user = db.relationship("User", back_populates="sessions")

    @property
    def is_expired(self) -> bool:
        expires = self.expires_at
        if expires is None:
            return True
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) > expires

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "is_active": self.is_active,
            "expires_at": iso(self.expires_at),
            "created_at": iso(self.created_at),
        }
