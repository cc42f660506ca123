"""
Donor Oversight Platform
Key/value application settings.

Values are stored as JSON so numbers, booleans and strings round-trip
unchanged.  Secret keys are encrypted by the settings service before
they reach this table.
"""

from oversight.models import db
from oversight.models.base import iso, utcnow


class Setting(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.JSON)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
            "updated_by_id": self.updated_by_id,
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Setting {self.key}>"
