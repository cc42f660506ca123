"""
Donor Oversight Platform
Approval workflow model.

Models:
    - Approval: one change request against an activity, moving through
      Submitted → FinanceApproved → CommitteeApproved, or → Rejected.

``history`` is an append-only JSON list.  Always assign a new list
(``approval.history = [*approval.history, entry]``) so SQLAlchemy sees
the change.
"""

from oversight.constants import STATE_SUBMITTED, TERMINAL_APPROVAL_STATES
from oversight.models import db
from oversight.models.base import iso, utcnow


class Approval(db.Model):
    __tablename__ = "approvals"
    __table_args__ = (
        db.Index("idx_approval_target", "target_type", "target_id"),
        db.Index("idx_approval_state", "state"),
    )

    id = db.Column(db.Integer, primary_key=True)
    target_type = db.Column(db.String(30), nullable=False, comment="EstimateChange | ActualEntry | StatusChange")
    target_id = db.Column(
        db.Integer, db.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False,
    )
    state = db.Column(db.String(20), nullable=False, default=STATE_SUBMITTED)
    old_value = db.Column(db.Numeric(15, 2))
    new_value = db.Column(db.Numeric(15, 2))
    target_version = db.Column(db.Integer, comment="Activity.version captured at submission")
    comment = db.Column(db.Text)
    history = db.Column(db.JSON, default=list)

    submitted_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    finance_approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    finance_approved_at = db.Column(db.DateTime(timezone=True))
    finance_comment = db.Column(db.Text)
    committee_approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    committee_approved_at = db.Column(db.DateTime(timezone=True))
    committee_comment = db.Column(db.Text)
    rejected_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    rejected_at = db.Column(db.DateTime(timezone=True))
    rejection_reason = db.Column(db.Text)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    activity = db.relationship("Activity")
    submitted_by = db.relationship("User", foreign_keys=[submitted_by_id])

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_APPROVAL_STATES

    def to_dict(self):
        return {
            "id": self.id,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "activity": {
                "id": self.activity.id,
                "code": self.activity.code,
                "title": self.activity.title,
            } if self.activity else None,
            "state": self.state,
            "old_value": float(self.old_value) if self.old_value is not None else None,
            "new_value": float(self.new_value) if self.new_value is not None else None,
            "target_version": self.target_version,
            "comment": self.comment,
            "history": self.history or [],
            "submitted_by": self.submitted_by.to_summary() if self.submitted_by else None,
            "finance_approved_by_id": self.finance_approved_by_id,
            "finance_approved_at": iso(self.finance_approved_at),
            "finance_comment": self.finance_comment,
            "committee_approved_by_id": self.committee_approved_by_id,
            "committee_approved_at": iso(self.committee_approved_at),
            "committee_comment": self.committee_comment,
            "rejected_by_id": self.rejected_by_id,
            "rejected_at": iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Approval {self.id}: {self.target_type} activity={self.target_id} [{self.state}]>"
