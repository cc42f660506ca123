"""
AuditedModel — abstract base for user-authored records.

Adds creator / last-editor FKs and created/updated timestamps, plus
small coercion helpers shared by ``to_dict`` implementations.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import declared_attr

from oversight.models import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def iso(value) -> str | None:
    """ISO-8601 string; datetimes are rendered as UTC with an offset."""
    if value is None:
        return None
    if isinstance(value, datetime):
        value = as_utc(value)
    return value.isoformat()


def money(value) -> float:
    """Serialise a Numeric column to a JSON-friendly float."""
    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


class AuditedModel(db.Model):
    """Abstract base for tables that track who created / last changed a row."""
    __abstract__ = True

    @declared_attr
    def created_by_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @declared_attr
    def updated_by_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @classmethod
    def next_sn(cls) -> int:
        """Next serial number for tables with an ``sn`` column."""
        current = db.session.query(func.max(cls.sn)).scalar()
        return (current or 0) + 1
