"""
Donor Oversight Platform
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for every mutation.
"""

from datetime import UTC, datetime
from decimal import Decimal

from oversight.models import db
from oversight.models.base import iso

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ACTIONS = {
    "Create",
    "Update",
    "Delete",
    "Approve",
    "Reject",
    "Import",
    "Lock",
    "Unlock",
}

AUDIT_OBJECT_TYPES = {
    "User", "Session", "InvestmentObjective", "Activity", "Actual",
    "Attachment", "Approval", "Comment", "Setting",
}


class AuditLog(db.Model):
    """
    Immutable audit trail.

    One row per action.  ``previous_values`` / ``new_values`` carry the
    field-level snapshot; either may be null (creates have no previous,
    deletes have no new).
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_object", "object_type", "object_id"),
        db.Index("idx_audit_actor", "actor_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="NULL for system entries",
    )
    actor_role = db.Column(db.String(30))

    action = db.Column(db.String(20), nullable=False, comment="Create | Update | Delete | Approve | …")
    object_type = db.Column(db.String(40), nullable=False)
    object_id = db.Column(db.String(36), nullable=False)

    previous_values = db.Column(db.JSON)
    new_values = db.Column(db.JSON)
    comment = db.Column(db.Text)
    ip_address = db.Column(db.String(45))

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    actor = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "actor_name": self.actor.full_name if self.actor else "System",
            "actor_role": self.actor_role,
            "action": self.action,
            "object_type": self.object_type,
            "object_id": self.object_id,
            "previous_values": self.previous_values,
            "new_values": self.new_values,
            "comment": self.comment,
            "ip_address": self.ip_address,
            "timestamp": iso(self.timestamp),
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.object_type}/{self.object_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def _jsonable(values):
    """Coerce Decimal/date values so the JSON column can store them."""
    if values is None:
        return None
    out = {}
    for key, val in values.items():
        if isinstance(val, Decimal):
            out[key] = float(val)
        elif hasattr(val, "isoformat"):
            out[key] = val.isoformat()
        else:
            out[key] = val
    return out


def write_audit(
    *,
    action: str,
    object_type: str,
    object_id,
    actor_id: int | None = None,
    actor_role: str | None = None,
    previous_values: dict | None = None,
    new_values: dict | None = None,
    comment: str | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Actor and IP fall back to the current request's JWT context.
    """
    from flask import g, has_request_context, request

    if has_request_context():
        if actor_id is None:
            actor_id = getattr(g, "jwt_user_id", None)
        if actor_role is None:
            actor_role = getattr(g, "jwt_role", None)
        if ip_address is None:
            forwarded_for = request.headers.get("X-Forwarded-For", "")
            ip_address = forwarded_for.split(",")[0].strip() if forwarded_for else request.remote_addr

    log = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        object_type=object_type,
        object_id=str(object_id),
        previous_values=_jsonable(previous_values),
        new_values=_jsonable(new_values),
        comment=comment,
        ip_address=ip_address,
    )
    db.session.add(log)
    db.session.flush()
    return log
