"""
Donor Oversight Platform
Actual Spend Service.

Every create/update/delete:
    1. clears a stale edit lock on the parent activity (the row is written),
    2. recomputes ``activity.actual_spend_usd_total`` from live actuals,
    3. audits the change,
    4. raises a VarianceAlert to Finance/Admin when actual > estimated.
"""

import logging
from decimal import Decimal

from sqlalchemy import func

from oversight.constants import ROLE_ADMIN, ROLE_FINANCE
from oversight.core.exceptions import NotFoundError, ValidationError
from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.actual import Actual
from oversight.models.audit import write_audit
from oversight.models.base import money
from oversight.services.activity_service import clear_stale_lock, get_activity
from oversight.services.notification_service import NotificationService
from oversight.utils.helpers import parse_date_input, parse_money

logger = logging.getLogger(__name__)

_FIELDS = ("entry_date", "amount_usd", "category", "description")


def get_actual(actual_id: int) -> Actual:
    actual = Actual.get_active(actual_id)
    if actual is None or actual.activity is None or actual.activity.is_deleted:
        raise NotFoundError(resource="Actual", resource_id=actual_id)
    return actual


def _clean(data: dict, *, partial: bool) -> dict:
    errors = {}
    out = {}

    if "entry_date" in data or not partial:
        try:
            entry_date = parse_date_input(data.get("entry_date"))
        except ValueError as exc:
            errors["entry_date"] = str(exc)
        else:
            if entry_date is None:
                errors["entry_date"] = "required"
            else:
                out["entry_date"] = entry_date

    if "amount_usd" in data or not partial:
        try:
            amount = parse_money(data.get("amount_usd"))
        except ValueError:
            errors["amount_usd"] = "must be a number"
        else:
            if amount <= 0:
                errors["amount_usd"] = "must be greater than zero"
            else:
                out["amount_usd"] = amount

    if "category" in data:
        category = data["category"]
        if category is not None and not isinstance(category, str):
            errors["category"] = "must be a string"
        elif category and len(category.strip()) > 100:
            errors["category"] = "must be at most 100 characters"
        else:
            out["category"] = (category or "").strip() or None

    if "description" in data:
        description = data["description"]
        if description is not None and not isinstance(description, str):
            errors["description"] = "must be a string"
        else:
            out["description"] = (description or "").strip() or None

    if errors:
        raise ValidationError("Invalid actual data", details=errors)
    return out


def recompute_actual_total(activity: Activity) -> Decimal:
    """Recalculate the activity's actual spend from live actuals.  Flushes only."""
    clear_stale_lock(activity)
    total = (
        db.session.query(func.coalesce(func.sum(Actual.amount_usd), 0))
        .filter(Actual.activity_id == activity.id, Actual.deleted_at.is_(None))
        .scalar()
    )
    activity.actual_spend_usd_total = Decimal(str(total or 0))
    db.session.flush()
    return activity.actual_spend_usd_total


def check_variance(activity: Activity) -> float | None:
    """Notify Finance/Admin when actual spend exceeds the estimate.

    Returns the variance percentage when an alert was raised.
    """
    estimated = money(activity.estimated_spend_usd_total)
    actual = money(activity.actual_spend_usd_total)
    if actual <= estimated:
        return None

    variance_pct = ((actual - estimated) / estimated * 100) if estimated > 0 else 100.0
    recipients = NotificationService.user_ids_with_roles((ROLE_FINANCE, ROLE_ADMIN))
    NotificationService.notify_users(
        recipients,
        type="VarianceAlert",
        title="Spend Exceeded Estimate",
        message=f"{activity.title} has exceeded estimated spend by {variance_pct:.1f}%",
        link=f"/activities/{activity.id}",
        email_template="variance_alert",
        email_context={
            "activity_title": activity.title,
            "variance_percent": f"{variance_pct:.1f}",
            "estimated": f"{estimated:,.2f}",
            "actual": f"{actual:,.2f}",
        },
    )
    logger.info("Variance alert on %s: %.1f%% over estimate", activity.code, variance_pct,
                extra={"activity_id": activity.id, "event_type": "variance_alert"})
    return variance_pct


def list_actuals(activity_id: int) -> list[Actual]:
    get_activity(activity_id)
    return (
        Actual.query_active()
        .filter(Actual.activity_id == activity_id)
        .order_by(Actual.entry_date.desc(), Actual.id.desc())
        .all()
    )


def create_actual(data: dict, user) -> Actual:
    try:
        activity_id = int(data.get("activity_id"))
    except (TypeError, ValueError) as exc:
        raise ValidationError("activity_id is required", details={"activity_id": "required"}) from exc
    activity = get_activity(activity_id)
    fields = _clean(data, partial=False)

    actual = Actual(activity_id=activity.id, created_by_id=user.id, updated_by_id=user.id, **fields)
    db.session.add(actual)
    db.session.flush()
    recompute_actual_total(activity)

    write_audit(action="Create", object_type="Actual", object_id=actual.id,
                new_values={"activity_id": activity.id, **{f: getattr(actual, f) for f in _FIELDS}})
    check_variance(activity)
    db.session.commit()
    return actual


def update_actual(actual_id: int, data: dict, user) -> Actual:
    actual = get_actual(actual_id)
    fields = _clean(data, partial=True)

    previous, new = {}, {}
    for field, value in fields.items():
        if getattr(actual, field) != value:
            previous[field] = getattr(actual, field)
            new[field] = value
            setattr(actual, field, value)

    if new:
        actual.updated_by_id = user.id
        db.session.flush()
        recompute_actual_total(actual.activity)
        write_audit(action="Update", object_type="Actual", object_id=actual.id,
                    previous_values=previous, new_values=new)
        check_variance(actual.activity)
    db.session.commit()
    return actual


def delete_actual(actual_id: int, user) -> None:
    actual = get_actual(actual_id)
    actual.soft_delete()
    actual.updated_by_id = user.id
    db.session.flush()
    recompute_actual_total(actual.activity)
    write_audit(action="Delete", object_type="Actual", object_id=actual.id,
                previous_values={f: getattr(actual, f) for f in _FIELDS})
    check_variance(actual.activity)
    db.session.commit()
