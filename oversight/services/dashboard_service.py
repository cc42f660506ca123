"""
Donor Oversight Platform
Dashboard metrics service.

All figures cover live (non-deleted) objectives, activities and actuals
only.  Annual estimates are stored as JSON, so per-year estimate totals
are summed in Python; actual spend is grouped in SQL.
"""

import logging
from collections import defaultdict
from datetime import date

from sqlalchemy import extract, func

from oversight.constants import ACTIVITY_STATUSES, STATE_FINANCE_APPROVED, STATE_SUBMITTED
from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.actual import Actual
from oversight.models.approval import Approval
from oversight.models.base import iso, money
from oversight.models.objective import InvestmentObjective

logger = logging.getLogger(__name__)


def _live_activities():
    return (
        Activity.query_active()
        .join(InvestmentObjective, Activity.objective_id == InvestmentObjective.id)
        .filter(InvestmentObjective.deleted_at.is_(None))
    )


def _live_actuals_query(*columns):
    return (
        db.session.query(*columns)
        .join(Activity, Actual.activity_id == Activity.id)
        .filter(Actual.deleted_at.is_(None), Activity.deleted_at.is_(None))
    )


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def get_kpis() -> dict:
    """Headline portfolio figures."""
    activities = _live_activities().all()
    total_estimated = sum(money(a.estimated_spend_usd_total) for a in activities)
    total_actual = sum(money(a.actual_spend_usd_total) for a in activities)
    variance = total_actual - total_estimated

    by_status = {status: 0 for status in ACTIVITY_STATUSES}
    for a in activities:
        by_status[a.status] = by_status.get(a.status, 0) + 1

    pending = Approval.query.filter(
        Approval.state.in_((STATE_SUBMITTED, STATE_FINANCE_APPROVED))
    ).count()

    return {
        "total_estimated_usd": round(total_estimated, 2),
        "total_actual_usd": round(total_actual, 2),
        "variance_usd": round(variance, 2),
        "variance_percent": _pct(variance, total_estimated),
        "activity_count": len(activities),
        "activities_by_status": by_status,
        "objective_count": InvestmentObjective.query_active().count(),
        "pending_approvals": pending,
        "over_budget_count": sum(1 for a in activities if a.variance > 0),
    }


def get_spend_by_year(start_year: int | None = None, end_year: int | None = None) -> list[dict]:
    """Estimated (annual_estimates) vs actual (entry_date year) per year."""
    estimated = defaultdict(float)
    for a in _live_activities().all():
        for year, amount in (a.annual_estimates or {}).items():
            estimated[int(year)] += float(amount or 0)

    year_col = extract("year", Actual.entry_date)
    actual = {
        int(year): money(total)
        for year, total in _live_actuals_query(year_col, func.sum(Actual.amount_usd))
        .group_by(year_col)
        .all()
        if year is not None
    }

    years = sorted(set(estimated) | set(actual))
    if start_year:
        years = [y for y in years if y >= start_year]
    if end_year:
        years = [y for y in years if y <= end_year]
    return [
        {
            "year": y,
            "estimated_usd": round(estimated.get(y, 0.0), 2),
            "actual_usd": round(actual.get(y, 0.0), 2),
            "variance_usd": round(actual.get(y, 0.0) - estimated.get(y, 0.0), 2),
        }
        for y in years
    ]


def get_variance_alerts(limit: int = 10) -> list[dict]:
    """Activities whose actual spend exceeds the estimate, worst first."""
    limit = min(max(int(limit or 10), 1), 100)
    over = [a for a in _live_activities().all() if a.variance > 0]
    over.sort(key=lambda a: a.variance, reverse=True)
    return [
        {
            "activity_id": a.id,
            "code": a.code,
            "title": a.title,
            "objective_id": a.objective_id,
            "estimated_usd": money(a.estimated_spend_usd_total),
            "actual_usd": money(a.actual_spend_usd_total),
            "variance_usd": round(a.variance, 2),
            "variance_percent": _pct(a.variance, money(a.estimated_spend_usd_total))
            if money(a.estimated_spend_usd_total) else 100.0,
        }
        for a in over[:limit]
    ]


def get_gantt(year: int | None = None, objective_id: int | None = None) -> list[dict]:
    """Dated activities for the timeline view; ``year`` keeps overlapping ones."""
    q = _live_activities().filter(Activity.start_date.isnot(None), Activity.end_date.isnot(None))
    if objective_id:
        q = q.filter(Activity.objective_id == objective_id)
    if year:
        q = q.filter(
            Activity.start_date <= date(year, 12, 31),
            Activity.end_date >= date(year, 1, 1),
        )
    return [
        {
            "id": a.id,
            "code": a.code,
            "title": a.title,
            "start_date": iso(a.start_date),
            "end_date": iso(a.end_date),
            "progress_percent": a.progress_percent,
            "status": a.status,
            "objective": {"id": a.objective.id, "code": a.objective.code, "title": a.objective.title},
        }
        for a in q.order_by(Activity.start_date, Activity.sn).all()
    ]


def get_spend_analysis() -> dict:
    """Totals by region, by activity status and by actual category."""
    by_region = defaultdict(lambda: {"estimated_usd": 0.0, "actual_usd": 0.0, "activity_count": 0})
    by_status = defaultdict(lambda: {"estimated_usd": 0.0, "actual_usd": 0.0, "activity_count": 0})

    for a in _live_activities().all():
        estimated = money(a.estimated_spend_usd_total)
        actual = money(a.actual_spend_usd_total)
        regions = (a.objective.regions or []) or ["Unassigned"]
        # Multi-region objectives count fully in every region they cover
        for region in regions:
            bucket = by_region[region]
            bucket["estimated_usd"] += estimated
            bucket["actual_usd"] += actual
            bucket["activity_count"] += 1
        bucket = by_status[a.status]
        bucket["estimated_usd"] += estimated
        bucket["actual_usd"] += actual
        bucket["activity_count"] += 1

    category = func.coalesce(Actual.category, "Uncategorised")
    by_category = [
        {"category": name, "actual_usd": money(total), "entry_count": count}
        for name, total, count in _live_actuals_query(
            category, func.sum(Actual.amount_usd), func.count(Actual.id),
        )
        .group_by(category)
        .order_by(func.sum(Actual.amount_usd).desc())
        .all()
    ]

    def _rows(buckets, key):
        return [
            {key: name,
             "estimated_usd": round(v["estimated_usd"], 2),
             "actual_usd": round(v["actual_usd"], 2),
             "activity_count": v["activity_count"]}
            for name, v in sorted(buckets.items())
        ]

    return {
        "by_region": _rows(by_region, "region"),
        "by_status": _rows(by_status, "status"),
        "by_category": by_category,
    }
