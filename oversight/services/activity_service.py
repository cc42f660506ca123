"""
Donor Oversight Platform
Activity Service — CRUD, edit locks and optimistic concurrency.

Edit lock rules:
    - A lock is valid only while ``locked_by_id`` is set AND ``locked_at``
      is within the TTL (``ACTIVITY_LOCK_TTL_MINUTES``, default 30).
    - Every write path calls ``clear_stale_lock`` before touching the row,
      so an expired lock is never carried forward by a later write.
    - A valid lock held by someone else blocks update/delete/lock (409).
      Only the holder or an Admin may release it.

Optimistic concurrency:
    ``version`` is bumped with a conditional UPDATE (``WHERE version = :seen``)
    so two writers that both read version N cannot both commit N+1.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import or_, update
from sqlalchemy.orm.attributes import set_committed_value

from oversight.constants import (
    ACTIVITY_STATUSES,
    ESTIMATE_YEARS,
    PRIORITY_LEVELS,
    RISK_RATINGS,
    ROLE_ADMIN,
    ROLE_COMMITTEE,
    ROLE_FINANCE,
)
from oversight.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from oversight.models import db
from oversight.models.activity import Activity, lock_ttl
from oversight.models.audit import write_audit
from oversight.models.base import iso, utcnow
from oversight.models.objective import InvestmentObjective
from oversight.services.notification_service import NotificationService
from oversight.services.objective_service import recompute_objective_spend
from oversight.utils.helpers import paginate, parse_date_input, parse_money

logger = logging.getLogger(__name__)

ESTIMATE_TOLERANCE = Decimal("0.01")

SORT_COLUMNS = {
    "sn": Activity.sn,
    "title": Activity.title,
    "start_date": Activity.start_date,
    "end_date": Activity.end_date,
    "status": Activity.status,
    "estimated": Activity.estimated_spend_usd_total,
}

_AUDITED_FIELDS = (
    "objective_id", "title", "description", "start_date", "end_date", "status",
    "progress_percent", "lead", "estimated_spend_usd_total", "annual_estimates",
    "risk_rating", "priority",
)


def get_activity(activity_id: int) -> Activity:
    activity = Activity.get_active(activity_id)
    if activity is None:
        raise NotFoundError(resource="Activity", resource_id=activity_id)
    return activity


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════
def _clean_annual_estimates(value, errors):
    if value is None:
        return {}
    if not isinstance(value, dict):
        errors["annual_estimates"] = "must be an object of year → amount"
        return None
    cleaned = {}
    for year, amount in value.items():
        try:
            year_int = int(year)
        except (TypeError, ValueError):
            errors["annual_estimates"] = f"invalid year: {year}"
            return None
        if year_int not in ESTIMATE_YEARS:
            errors["annual_estimates"] = (
                f"year {year_int} outside {ESTIMATE_YEARS[0]}-{ESTIMATE_YEARS[-1]}"
            )
            return None
        try:
            amount_dec = parse_money(amount)
        except ValueError:
            errors["annual_estimates"] = f"amount for {year_int} must be a number"
            return None
        if amount_dec < 0:
            errors["annual_estimates"] = f"amount for {year_int} must be non-negative"
            return None
        cleaned[str(year_int)] = float(amount_dec)
    return dict(sorted(cleaned.items()))


def clean_activity_fields(data: dict, *, partial: bool, current: Activity | None = None) -> dict:
    """Validate writable activity fields; raise ValidationError with per-field details."""
    errors = {}
    out = {}

    if "objective_id" in data or not partial:
        objective_id = data.get("objective_id")
        try:
            objective_id = int(objective_id)
        except (TypeError, ValueError):
            errors["objective_id"] = "required"
        else:
            if InvestmentObjective.get_active(objective_id) is None:
                errors["objective_id"] = "objective not found"
            else:
                out["objective_id"] = objective_id

    if "title" in data or not partial:
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            errors["title"] = "required"
        elif len(title.strip()) > 300:
            errors["title"] = "must be at most 300 characters"
        else:
            out["title"] = title.strip()

    for field, max_len in (("description", None), ("lead", 200)):
        if field in data:
            value = data[field]
            if value is not None and not isinstance(value, str):
                errors[field] = "must be a string"
            elif max_len and value and len(value.strip()) > max_len:
                errors[field] = f"must be at most {max_len} characters"
            else:
                out[field] = (value or "").strip() or None

    for field in ("start_date", "end_date"):
        if field in data:
            try:
                out[field] = parse_date_input(data[field])
            except ValueError as exc:
                errors[field] = str(exc)

    start = out.get("start_date", current.start_date if current else None)
    end = out.get("end_date", current.end_date if current else None)
    if start and end and end < start and "end_date" not in errors:
        errors["end_date"] = "must be on or after start_date"

    for field, allowed in (("status", ACTIVITY_STATUSES), ("risk_rating", RISK_RATINGS),
                           ("priority", PRIORITY_LEVELS)):
        if field not in data:
            continue
        value = data[field]
        if value in (None, "") and field != "status":
            out[field] = None
        elif value not in allowed:
            errors[field] = f"must be one of {', '.join(allowed)}"
        else:
            out[field] = value

    if "progress_percent" in data:
        value = data["progress_percent"]
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            errors["progress_percent"] = "must be an integer between 0 and 100"
        else:
            try:
                pct = int(value)
            except (TypeError, ValueError):
                errors["progress_percent"] = "must be an integer between 0 and 100"
            else:
                if not 0 <= pct <= 100:
                    errors["progress_percent"] = "must be an integer between 0 and 100"
                else:
                    out["progress_percent"] = pct

    if "estimated_spend_usd_total" in data:
        value = data["estimated_spend_usd_total"]
        if value is None:
            out["estimated_spend_usd_total"] = Decimal("0.00")
        else:
            try:
                total = parse_money(value)
            except ValueError:
                errors["estimated_spend_usd_total"] = "must be a number"
            else:
                if total < 0:
                    errors["estimated_spend_usd_total"] = "must be non-negative"
                else:
                    out["estimated_spend_usd_total"] = total

    if "annual_estimates" in data:
        estimates = _clean_annual_estimates(data["annual_estimates"], errors)
        if estimates is not None:
            out["annual_estimates"] = estimates

    # Annual estimates, when present, must add up to the total
    touched = "annual_estimates" in out or "estimated_spend_usd_total" in out
    if touched and "annual_estimates" not in errors and "estimated_spend_usd_total" not in errors:
        estimates = out.get("annual_estimates",
                            (current.annual_estimates if current else None) or {})
        if estimates:
            estimate_sum = sum(Decimal(str(v)) for v in estimates.values())
            if "estimated_spend_usd_total" not in out and current is None:
                out["estimated_spend_usd_total"] = estimate_sum.quantize(ESTIMATE_TOLERANCE)
            total = out.get("estimated_spend_usd_total",
                            Decimal(str(current.estimated_spend_usd_total or 0)) if current else Decimal("0"))
            if abs(estimate_sum - Decimal(str(total))) > ESTIMATE_TOLERANCE:
                errors["annual_estimates"] = "must sum to estimated_spend_usd_total"

    if errors:
        raise ValidationError("Invalid activity data", details=errors)
    return out


# ═══════════════════════════════════════════════════════════════
# Locking
# ═══════════════════════════════════════════════════════════════
def clear_stale_lock(activity: Activity, now=None) -> bool:
    """Drop an expired lock before a write.  Returns True when one was cleared."""
    if not activity.has_stale_lock(now):
        return False
    logger.info("Clearing stale lock on %s (held by user %s since %s)",
                activity.code, activity.locked_by_id, iso(activity.locked_at),
                extra={"activity_id": activity.id})
    activity.clear_lock()
    return True


def _lock_conflict(activity: Activity) -> StateConflictError:
    holder = activity.locked_by.full_name if activity.locked_by else "another user"
    status = activity.lock_status()
    return StateConflictError(
        f"Activity is locked by {holder}",
        details={"locked_by": status["locked_by"], "expires_at": status["expires_at"]},
    )


def ensure_writable(activity: Activity, user, expected_version=None) -> None:
    """Clear a stale lock, then refuse if another user holds a valid one or the version moved."""
    now = utcnow()
    clear_stale_lock(activity, now)
    if activity.is_locked_by_other(user.id, now):
        raise _lock_conflict(activity)
    if expected_version is not None:
        try:
            expected = int(expected_version)
        except (TypeError, ValueError) as exc:
            raise ValidationError("version must be an integer", details={"version": "invalid"}) from exc
        if expected != activity.version:
            raise StateConflictError(
                "Activity was modified by another user",
                details={"current_version": activity.version, "expected_version": expected},
            )


def bump_version(activity: Activity) -> int:
    """Increment ``version`` only if nobody else did since we loaded the row."""
    seen = activity.version
    result = db.session.execute(
        update(Activity)
        .where(Activity.id == activity.id, Activity.version == seen)
        .values(version=seen + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StateConflictError(
            "Activity was modified by another user",
            details={"expected_version": seen},
        )
    set_committed_value(activity, "version", seen + 1)
    return seen + 1


def lock_activity(activity_id: int, user) -> dict:
    activity = get_activity(activity_id)
    now = utcnow()
    clear_stale_lock(activity, now)
    if activity.is_locked_by_other(user.id, now):
        raise _lock_conflict(activity)

    result = db.session.execute(
        update(Activity)
        .where(Activity.id == activity.id,
               or_(Activity.locked_by_id.is_(None), Activity.locked_by_id == user.id))
        .values(locked_by_id=user.id, locked_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise _lock_conflict(get_activity(activity_id))
    set_committed_value(activity, "locked_by_id", user.id)
    set_committed_value(activity, "locked_at", now)

    write_audit(action="Lock", object_type="Activity", object_id=activity.id,
                new_values={"locked_by_id": user.id, "locked_at": now})
    db.session.commit()
    logger.info("Lock acquired on %s by user %d", activity.code, user.id,
                extra={"activity_id": activity.id, "user_id": user.id})
    return {
        "locked_by": user.to_summary(),
        "locked_at": iso(now),
        "expires_at": iso(now + lock_ttl()),
    }


def unlock_activity(activity_id: int, user) -> dict:
    activity = get_activity(activity_id)
    now = utcnow()
    holder_id = activity.locked_by_id
    if activity.is_locked_by_other(user.id, now) and not user.is_admin:
        raise PermissionDeniedError("Only the lock holder or an Admin can release this lock")

    if holder_id is not None or activity.locked_at is not None:
        activity.clear_lock()
        comment = None
        if holder_id is not None and holder_id != user.id:
            comment = "Lock released by administrator"
        write_audit(action="Unlock", object_type="Activity", object_id=activity.id,
                    previous_values={"locked_by_id": holder_id}, comment=comment)
        logger.info("Lock released on %s by user %d", activity.code, user.id,
                    extra={"activity_id": activity.id, "user_id": user.id})
    db.session.commit()
    return activity.lock_status()


def get_lock_status(activity_id: int) -> dict:
    return get_activity(activity_id).lock_status()


def cleanup_expired_locks() -> int:
    """Clear every stale lock in one statement.  Returns the number of rows cleared."""
    cutoff = utcnow() - lock_ttl()
    count = (
        Activity.query
        .filter(or_(Activity.locked_by_id.isnot(None), Activity.locked_at.isnot(None)))
        .filter(or_(Activity.locked_by_id.is_(None),
                    Activity.locked_at.is_(None),
                    Activity.locked_at <= cutoff))
        .update({"locked_by_id": None, "locked_at": None}, synchronize_session=False)
    )
    db.session.commit()
    if count:
        logger.info("Cleared %d expired activity locks", count)
    return count


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def filter_activities(*, objective_id=None, status=None, lead=None, start_year=None,
                      end_year=None, search=None):
    """Live activities matching the list filters (years keep overlapping date ranges)."""
    q = Activity.query_active()
    if objective_id:
        q = q.filter(Activity.objective_id == objective_id)
    if status:
        q = q.filter(Activity.status == status)
    if lead:
        q = q.filter(Activity.lead.ilike(f"%{lead.strip()}%"))
    if start_year:
        q = q.filter(or_(Activity.end_date.is_(None), Activity.end_date >= date(start_year, 1, 1)))
    if end_year:
        q = q.filter(or_(Activity.start_date.is_(None), Activity.start_date <= date(end_year, 12, 31)))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Activity.title.ilike(term), Activity.description.ilike(term)))
    return q


def list_activities(*, objective_id=None, status=None, lead=None, start_year=None,
                    end_year=None, search=None, sort_by="sn", sort_dir="asc",
                    page=1, limit=50) -> dict:
    if sort_by not in SORT_COLUMNS:
        raise ValidationError("Invalid sort_by",
                              details={"sort_by": f"must be one of {', '.join(SORT_COLUMNS)}"})
    if sort_dir not in ("asc", "desc"):
        raise ValidationError("Invalid sort_dir", details={"sort_dir": "must be asc or desc"})

    q = filter_activities(objective_id=objective_id, status=status, lead=lead,
                          start_year=start_year, end_year=end_year, search=search)

    column = SORT_COLUMNS[sort_by]
    order = column.desc() if sort_dir == "desc" else column.asc()
    result = paginate(q.order_by(order, Activity.sn), page, limit)
    result["items"] = [a.to_dict() for a in result["items"]]
    return result


# ═══════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════
def create_activity(data: dict, user) -> Activity:
    fields = clean_activity_fields(data, partial=False)
    activity = Activity(
        sn=Activity.next_sn(),
        status=fields.pop("status", None) or "Planned",
        progress_percent=fields.pop("progress_percent", 0),
        estimated_spend_usd_total=fields.pop("estimated_spend_usd_total", Decimal("0.00")),
        annual_estimates=fields.pop("annual_estimates", {}),
        actual_spend_usd_total=Decimal("0.00"),
        version=1,
        created_by_id=user.id,
        updated_by_id=user.id,
        **fields,
    )
    db.session.add(activity)
    db.session.flush()
    recompute_objective_spend(activity.objective_id)

    write_audit(action="Create", object_type="Activity", object_id=activity.id,
                new_values={f: getattr(activity, f) for f in _AUDITED_FIELDS})

    recipients = NotificationService.user_ids_with_roles(
        (ROLE_FINANCE, ROLE_COMMITTEE, ROLE_ADMIN), exclude_user_id=user.id,
    )
    NotificationService.notify_users(
        recipients,
        type="ActivityCreated",
        title="New Activity Created",
        message=f'{user.full_name} created activity "{activity.title}" '
                f'under "{activity.objective.title}"',
        link=f"/activities/{activity.id}",
    )
    db.session.commit()
    logger.info("Activity created: %s", activity.code,
                extra={"activity_id": activity.id, "user_id": user.id})
    return activity


def update_activity(activity_id: int, data: dict, user) -> Activity:
    activity = get_activity(activity_id)
    ensure_writable(activity, user, data.get("version"))
    fields = clean_activity_fields(data, partial=True, current=activity)

    previous, new = {}, {}
    for field, value in fields.items():
        current_value = getattr(activity, field)
        if field == "estimated_spend_usd_total":
            changed = Decimal(str(current_value or 0)) != value
        else:
            changed = current_value != value
        if changed:
            previous[field] = current_value
            new[field] = value
            setattr(activity, field, value)

    if new:
        old_objective_id = previous.get("objective_id")
        activity.updated_by_id = user.id
        bump_version(activity)
        if "estimated_spend_usd_total" in new or old_objective_id:
            recompute_objective_spend(activity.objective_id)
            if old_objective_id:
                recompute_objective_spend(old_objective_id)
        write_audit(action="Update", object_type="Activity", object_id=activity.id,
                    previous_values=previous, new_values=new)
    db.session.commit()
    return activity


def delete_activity(activity_id: int, user, expected_version=None) -> None:
    activity = get_activity(activity_id)
    ensure_writable(activity, user, expected_version)
    activity.clear_lock()
    activity.soft_delete()
    activity.updated_by_id = user.id
    db.session.flush()
    recompute_objective_spend(activity.objective_id)
    write_audit(action="Delete", object_type="Activity", object_id=activity.id,
                previous_values={"title": activity.title,
                                 "estimated_spend_usd_total": activity.estimated_spend_usd_total})
    db.session.commit()
    logger.info("Activity deleted: %s", activity.code,
                extra={"activity_id": activity.id, "user_id": user.id})
