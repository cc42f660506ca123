"""
Donor Oversight Platform
Actual spend domain model.

Models:
    - Actual: a dated expenditure booked against an activity.
    - Attachment: supporting document (receipt, invoice) for an actual.
"""

from oversight.models import db
from oversight.models.base import AuditedModel, iso, money, utcnow
from oversight.models.soft_delete import SoftDeleteMixin

VIRUS_SCAN_STATUSES = {"Pending", "Clean", "Infected", "Error"}


class Actual(SoftDeleteMixin, AuditedModel):
    __tablename__ = "actuals"

    id = db.Column(db.Integer, primary_key=True)
    activity_id = db.Column(
        db.Integer, db.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    entry_date = db.Column(db.Date, nullable=False)
    amount_usd = db.Column(db.Numeric(15, 2), nullable=False)
    category = db.Column(db.String(100))
    description = db.Column(db.Text)

    activity = db.relationship("Activity")
    attachments = db.relationship("Attachment", back_populates="actual", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "activity_id": self.activity_id,
            "entry_date": iso(self.entry_date),
            "amount_usd": money(self.amount_usd),
            "category": self.category,
            "description": self.description,
            "attachment_count": self.attachments.filter(Attachment.deleted_at.is_(None)).count(),
            "created_by_id": self.created_by_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Actual {self.id}: {self.amount_usd} on activity {self.activity_id}>"


class Attachment(SoftDeleteMixin, db.Model):
    """Stored file metadata.  The object itself lives in the storage backend."""

    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)
    actual_id = db.Column(
        db.Integer, db.ForeignKey("actuals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    file_name = db.Column(db.String(255), nullable=False)
    original_file_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    mime_type = db.Column(db.String(150))
    storage_key = db.Column(db.String(500), nullable=False, unique=True)
    virus_scan_status = db.Column(db.String(20), default="Pending", nullable=False)
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    uploaded_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    actual = db.relationship("Actual", back_populates="attachments")

    def to_dict(self):
        return {
            "id": self.id,
            "actual_id": self.actual_id,
            "file_name": self.file_name,
            "original_file_name": self.original_file_name,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "virus_scan_status": self.virus_scan_status,
            "uploaded_by_id": self.uploaded_by_id,
            "uploaded_at": iso(self.uploaded_at),
        }
