"""
Donor Oversight Platform
Activity domain model.

Models:
    - Activity: a funded piece of work under an investment objective.

Edit lock:
    ``locked_by_id`` + ``locked_at`` form a soft, time-boxed lock.  A lock
    is valid only while ``locked_by_id`` is set AND ``locked_at`` is within
    the TTL (``ACTIVITY_LOCK_TTL_MINUTES``, default 30).  Anything older is
    stale and must be cleared before the next write.

Optimistic concurrency:
    ``version`` increments on every content change.  Clients may echo it
    back on update; approvals capture it at submission time.
"""

from datetime import datetime, timedelta, timezone

from flask import current_app, has_app_context

from oversight.models import db
from oversight.models.base import AuditedModel, as_utc, iso, money
from oversight.models.soft_delete import SoftDeleteMixin

DEFAULT_LOCK_TTL_MINUTES = 30


def lock_ttl() -> timedelta:
    minutes = DEFAULT_LOCK_TTL_MINUTES
    if has_app_context():
        minutes = current_app.config.get("ACTIVITY_LOCK_TTL_MINUTES", minutes)
    return timedelta(minutes=minutes)


class Activity(SoftDeleteMixin, AuditedModel):
    __tablename__ = "activities"
    __table_args__ = (
        db.Index("idx_activity_objective", "objective_id"),
        db.Index("idx_activity_status", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    sn = db.Column(db.Integer, unique=True, nullable=False)
    objective_id = db.Column(
        db.Integer, db.ForeignKey("investment_objectives.id", ondelete="CASCADE"), nullable=False,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    status = db.Column(db.String(20), default="Planned", nullable=False)
    progress_percent = db.Column(db.Integer, default=0, nullable=False)
    lead = db.Column(db.String(200))
    estimated_spend_usd_total = db.Column(db.Numeric(15, 2), default=0, nullable=False)
    actual_spend_usd_total = db.Column(db.Numeric(15, 2), default=0, nullable=False)
    annual_estimates = db.Column(db.JSON, default=dict, comment='{"2024": 1000.0, ...}')
    risk_rating = db.Column(db.String(10))
    priority = db.Column(db.String(10))
    version = db.Column(db.Integer, default=1, nullable=False)

    locked_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    objective = db.relationship("InvestmentObjective", back_populates="activities")
    locked_by = db.relationship("User", foreign_keys=[locked_by_id])
    created_by = db.relationship("User", foreign_keys="Activity.created_by_id")

    @property
    def code(self) -> str:
        return f"ACT-{self.sn:04d}"

    # ── Lock helpers ─────────────────────────────────────────────────────

    def lock_expires_at(self) -> datetime | None:
        if self.locked_at is None:
            return None
        return as_utc(self.locked_at) + lock_ttl()

    def has_valid_lock(self, now: datetime | None = None) -> bool:
        if self.locked_by_id is None or self.locked_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.lock_expires_at() > now

    def has_stale_lock(self, now: datetime | None = None) -> bool:
        """True when lock columns are populated but no longer valid."""
        populated = self.locked_by_id is not None or self.locked_at is not None
        return populated and not self.has_valid_lock(now)

    def is_locked_by_other(self, user_id: int, now: datetime | None = None) -> bool:
        return self.has_valid_lock(now) and self.locked_by_id != user_id

    def clear_lock(self):
        self.locked_by_id = None
        self.locked_at = None

    def lock_status(self) -> dict:
        if not self.has_valid_lock():
            return {"is_locked": False, "locked_by": None, "locked_at": None, "expires_at": None}
        return {
            "is_locked": True,
            "locked_by": self.locked_by.to_summary() if self.locked_by else {"id": self.locked_by_id},
            "locked_at": iso(self.locked_at),
            "expires_at": iso(self.lock_expires_at()),
        }

    # ── Serialisation ────────────────────────────────────────────────────

    @property
    def variance(self) -> float:
        return money(self.actual_spend_usd_total) - money(self.estimated_spend_usd_total)

    def to_dict(self, include_lock=True):
        d = {
            "id": self.id,
            "sn": self.sn,
            "code": self.code,
            "objective_id": self.objective_id,
            "objective_code": self.objective.code if self.objective else None,
            "title": self.title,
            "description": self.description,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "status": self.status,
            "progress_percent": self.progress_percent,
            "lead": self.lead,
            "estimated_spend_usd_total": money(self.estimated_spend_usd_total),
            "actual_spend_usd_total": money(self.actual_spend_usd_total),
            "variance": round(self.variance, 2),
            "annual_estimates": self.annual_estimates or {},
            "risk_rating": self.risk_rating,
            "priority": self.priority,
            "version": self.version,
            "created_by_id": self.created_by_id,
            "updated_by_id": self.updated_by_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_lock:
            d["lock"] = self.lock_status()
        return d

    def __repr__(self):
        return f"<Activity {self.code}: {self.title[:40]}>"
