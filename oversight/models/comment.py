"""
Donor Oversight Platform
Activity discussion model.

Models:
    - Comment: threaded comment on an activity (one level of ``parent_id``).
"""

from oversight.models import db
from oversight.models.base import iso, utcnow
from oversight.models.soft_delete import SoftDeleteMixin


class Comment(SoftDeleteMixin, db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    activity_id = db.Column(
        db.Integer, db.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "activity_id": self.activity_id,
            "parent_id": self.parent_id,
            "content": self.content,
            "user": self.user.to_summary() if self.user else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
