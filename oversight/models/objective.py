"""
Donor Oversight Platform
Investment objective domain model.

Models:
    - InvestmentObjective: top-level funding goal grouping activities.
"""

from oversight.models import db
from oversight.models.base import AuditedModel, iso, money
from oversight.models.soft_delete import SoftDeleteMixin


class InvestmentObjective(SoftDeleteMixin, AuditedModel):
    """
    A donor investment objective.

    ``regions`` is always derived from ``states`` by the service layer;
    ``computed_estimated_spend_usd`` is the sum of the live activities'
    estimates and is recomputed on every activity estimate change.
    """

    __tablename__ = "investment_objectives"

    id = db.Column(db.Integer, primary_key=True)
    sn = db.Column(db.Integer, unique=True, nullable=False)
    title = db.Column(db.String(300), nullable=False)
    short_description = db.Column(db.String(500))
    long_description = db.Column(db.Text)
    states = db.Column(db.JSON, default=list)
    regions = db.Column(db.JSON, default=list)
    tags = db.Column(db.JSON, default=list)
    overall_start_year = db.Column(db.Integer)
    overall_end_year = db.Column(db.Integer)
    status = db.Column(db.String(30), default="Active", nullable=False)
    computed_estimated_spend_usd = db.Column(db.Numeric(15, 2), default=0, nullable=False)

    activities = db.relationship("Activity", back_populates="objective", lazy="dynamic")

    @property
    def code(self) -> str:
        return f"OBJ-{self.sn:04d}"

    def live_activities(self):
        from oversight.models.activity import Activity
        return self.activities.filter(Activity.deleted_at.is_(None)).order_by(Activity.sn)

    def to_dict(self, include_activities=False):
        d = {
            "id": self.id,
            "sn": self.sn,
            "code": self.code,
            "title": self.title,
            "short_description": self.short_description,
            "long_description": self.long_description,
            "states": self.states or [],
            "regions": self.regions or [],
            "tags": self.tags or [],
            "overall_start_year": self.overall_start_year,
            "overall_end_year": self.overall_end_year,
            "status": self.status,
            "computed_estimated_spend_usd": money(self.computed_estimated_spend_usd),
            "created_by_id": self.created_by_id,
            "updated_by_id": self.updated_by_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_activities:
            d["activities"] = [a.to_dict() for a in self.live_activities()]
        return d

    def __repr__(self):
        return f"<InvestmentObjective {self.code}: {self.title[:40]}>"
