"""
Donor Oversight Platform
Investment Objective Service.

Business rules:
    - ``regions`` is derived from ``states`` on every write; clients never
      set it directly.
    - ``computed_estimated_spend_usd`` is the sum of the live activities'
      ``estimated_spend_usd_total``; ``recompute_objective_spend`` is called
      by every activity write that touches estimates.
    - Deleting an objective soft-deletes its activities in the same
      transaction.
"""

import logging
from decimal import Decimal

from sqlalchemy import String, cast, func, or_

from oversight.constants import (
    NIGERIAN_STATES,
    OBJECTIVE_STATUSES,
    ROLE_ADMIN,
    ROLE_COMMITTEE,
    ROLE_FINANCE,
    regions_for_states,
)
from oversight.core.exceptions import NotFoundError, ValidationError
from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.audit import write_audit
from oversight.models.base import money, utcnow
from oversight.models.objective import InvestmentObjective
from oversight.services.notification_service import NotificationService
from oversight.utils.helpers import paginate

logger = logging.getLogger(__name__)

_TEXT_FIELDS = {"title": 300, "short_description": 500, "long_description": None}
_AUDITED_FIELDS = (
    "title", "short_description", "long_description", "states", "regions", "tags",
    "overall_start_year", "overall_end_year", "status",
)


def get_objective(objective_id: int) -> InvestmentObjective:
    objective = InvestmentObjective.get_active(objective_id)
    if objective is None:
        raise NotFoundError(resource="InvestmentObjective", resource_id=objective_id)
    return objective


def _clean(data: dict, *, partial: bool, current: InvestmentObjective | None = None) -> dict:
    """Validate the writable fields in *data* and return the cleaned subset."""
    errors = {}
    out = {}

    for field, max_len in _TEXT_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if value is not None and not isinstance(value, str):
            errors[field] = "must be a string"
            continue
        value = (value or "").strip() or None
        if max_len and value and len(value) > max_len:
            errors[field] = f"must be at most {max_len} characters"
            continue
        out[field] = value
    if not partial and not out.get("title"):
        errors["title"] = "required"
    elif partial and "title" in out and not out["title"]:
        errors["title"] = "required"

    if "states" in data:
        states = data["states"] or []
        if not isinstance(states, list) or not all(isinstance(s, str) for s in states):
            errors["states"] = "must be a list of state names"
        else:
            unknown = [s for s in states if s not in NIGERIAN_STATES]
            if unknown:
                errors["states"] = f"unknown states: {', '.join(unknown)}"
            else:
                out["states"] = list(dict.fromkeys(states))
                out["regions"] = regions_for_states(out["states"])

    if "tags" in data:
        tags = data["tags"] or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            errors["tags"] = "must be a list of strings"
        else:
            out["tags"] = [t.strip() for t in tags if t.strip()]

    for field in ("overall_start_year", "overall_end_year"):
        if field not in data:
            continue
        value = data[field]
        if value is None or value == "":
            out[field] = None
            continue
        try:
            year = int(value)
        except (TypeError, ValueError):
            errors[field] = "must be a year"
            continue
        if isinstance(value, bool) or not 1900 <= year <= 2100:
            errors[field] = "must be a year between 1900 and 2100"
            continue
        out[field] = year

    start = out.get("overall_start_year", current.overall_start_year if current else None)
    end = out.get("overall_end_year", current.overall_end_year if current else None)
    if start is not None and end is not None and end < start:
        errors["overall_end_year"] = "must be greater than or equal to overall_start_year"

    if "status" in data:
        if data["status"] not in OBJECTIVE_STATUSES:
            errors["status"] = f"must be one of {', '.join(OBJECTIVE_STATUSES)}"
        else:
            out["status"] = data["status"]

    if errors:
        raise ValidationError("Invalid objective data", details=errors)
    return out


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def _json_contains(column, value):
    """Portable "JSON list contains string" filter (SQLite + PostgreSQL)."""
    return cast(column, String).like(f'%"{value}"%')


def list_objectives(*, status=None, region=None, state=None, start_year=None,
                    end_year=None, search=None, page=1, limit=20) -> dict:
    q = InvestmentObjective.query_active()
    if status:
        q = q.filter(InvestmentObjective.status == status)
    if region:
        q = q.filter(_json_contains(InvestmentObjective.regions, region))
    if state:
        q = q.filter(_json_contains(InvestmentObjective.states, state))
    if start_year:
        q = q.filter(or_(InvestmentObjective.overall_end_year.is_(None),
                         InvestmentObjective.overall_end_year >= start_year))
    if end_year:
        q = q.filter(or_(InvestmentObjective.overall_start_year.is_(None),
                         InvestmentObjective.overall_start_year <= end_year))
    if search:
        q = q.filter(InvestmentObjective.title.ilike(f"%{search.strip()}%"))

    result = paginate(q.order_by(InvestmentObjective.sn), page, limit)
    ids = [o.id for o in result["items"]]
    counts = {}
    if ids:
        counts = dict(
            db.session.query(Activity.objective_id, func.count(Activity.id))
            .filter(Activity.objective_id.in_(ids), Activity.deleted_at.is_(None))
            .group_by(Activity.objective_id)
            .all()
        )
    items = []
    for obj in result["items"]:
        d = obj.to_dict()
        d["activity_count"] = counts.get(obj.id, 0)
        items.append(d)
    result["items"] = items
    return result


def objective_aggregates(objective_id: int) -> dict:
    """Per-year estimate totals plus overall estimate/actual for one objective."""
    objective = get_objective(objective_id)
    by_year: dict[str, float] = {}
    total_estimate = 0.0
    total_actual = 0.0
    count = 0
    for activity in objective.live_activities():
        count += 1
        total_estimate += money(activity.estimated_spend_usd_total)
        total_actual += money(activity.actual_spend_usd_total)
        for year, amount in (activity.annual_estimates or {}).items():
            by_year[str(year)] = by_year.get(str(year), 0.0) + float(amount or 0)
    return {
        "objective_id": objective.id,
        "objective_code": objective.code,
        "by_year": {year: round(by_year[year], 2) for year in sorted(by_year)},
        "total_estimated_spend_usd": round(total_estimate, 2),
        "total_actual_spend_usd": round(total_actual, 2),
        "variance_usd": round(total_actual - total_estimate, 2),
        "activity_count": count,
    }


def recompute_objective_spend(objective_id: int) -> Decimal:
    """Recalculate ``computed_estimated_spend_usd`` from live activities.  Flushes only."""
    total = (
        db.session.query(func.coalesce(func.sum(Activity.estimated_spend_usd_total), 0))
        .filter(Activity.objective_id == objective_id, Activity.deleted_at.is_(None))
        .scalar()
    )
    objective = db.session.get(InvestmentObjective, objective_id)
    if objective is not None:
        objective.computed_estimated_spend_usd = Decimal(str(total or 0))
        db.session.flush()
    return Decimal(str(total or 0))


# ═══════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════
def create_objective(data: dict, user) -> InvestmentObjective:
    fields = _clean(data, partial=False)
    objective = InvestmentObjective(
        sn=InvestmentObjective.next_sn(),
        created_by_id=user.id,
        updated_by_id=user.id,
        **fields,
    )
    objective.states = fields.get("states", [])
    objective.regions = fields.get("regions", [])
    objective.tags = fields.get("tags", [])
    db.session.add(objective)
    db.session.flush()

    write_audit(action="Create", object_type="InvestmentObjective", object_id=objective.id,
                new_values={f: getattr(objective, f) for f in _AUDITED_FIELDS})

    recipients = NotificationService.user_ids_with_roles(
        (ROLE_FINANCE, ROLE_COMMITTEE, ROLE_ADMIN), exclude_user_id=user.id,
    )
    NotificationService.notify_users(
        recipients,
        type="ObjectiveCreated",
        title="New Investment Objective",
        message=f'{user.full_name} created objective "{objective.title}"',
        link=f"/objectives/{objective.id}",
    )
    db.session.commit()
    logger.info("Objective created: %s", objective.code,
                extra={"objective_id": objective.id, "user_id": user.id})
    return objective


def update_objective(objective_id: int, data: dict, user) -> InvestmentObjective:
    objective = get_objective(objective_id)
    fields = _clean(data, partial=True, current=objective)

    previous, new = {}, {}
    for field, value in fields.items():
        if getattr(objective, field) != value:
            previous[field] = getattr(objective, field)
            new[field] = value
            setattr(objective, field, value)

    if new:
        objective.updated_by_id = user.id
        write_audit(action="Update", object_type="InvestmentObjective", object_id=objective.id,
                    previous_values=previous, new_values=new)
    db.session.commit()
    return objective


def delete_objective(objective_id: int, user) -> int:
    """Soft-delete the objective and its activities.  Returns the activity count."""
    objective = get_objective(objective_id)
    now = utcnow()
    activities = objective.live_activities().all()
    for activity in activities:
        activity.clear_lock()
        activity.deleted_at = now
        activity.updated_by_id = user.id
    objective.deleted_at = now
    objective.updated_by_id = user.id

    write_audit(action="Delete", object_type="InvestmentObjective", object_id=objective.id,
                previous_values={"title": objective.title, "status": objective.status},
                comment=f"Soft-deleted with {len(activities)} activities")
    db.session.commit()
    logger.info("Objective deleted: %s (%d activities)", objective.code, len(activities),
                extra={"objective_id": objective.id, "user_id": user.id})
    return len(activities)
