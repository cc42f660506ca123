"""
Soft Delete Mixin.

Adds a ``deleted_at`` timestamp column and query helpers. Objectives,
activities, actuals, attachments and comments are never physically
removed; every read path goes through ``query_active()``.

Usage:
    class Actual(SoftDeleteMixin, AuditedModel):
        ...

    actual.soft_delete()
    db.session.commit()

    Actual.query_active().filter_by(activity_id=7).all()
"""

from datetime import datetime, timezone

from oversight.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_at.is_(None))

    @classmethod
    def get_active(cls, pk):
        """Fetch by primary key, treating soft-deleted rows as missing."""
        obj = db.session.get(cls, pk)
        if obj is None or obj.deleted_at is not None:
            return None
        return obj
