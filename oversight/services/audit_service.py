"""
Donor Oversight Platform
Audit query service — filtered listing, field value history, CSV export
and the human-readable activity feed.

Rows are written by ``models.audit.write_audit`` from every service; this
module only reads them.
"""

import csv
import io
import json
from datetime import datetime, time, timezone

from oversight.core.exceptions import ValidationError
from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.audit import AUDIT_ACTIONS, AUDIT_OBJECT_TYPES, AuditLog
from oversight.models.base import iso
from oversight.models.objective import InvestmentObjective
from oversight.models.setting import Setting
from oversight.models.user import User
from oversight.utils.helpers import paginate, parse_date

CSV_COLUMNS = (
    "id", "timestamp", "actor_id", "actor_name", "actor_role", "action",
    "object_type", "object_id", "comment", "ip_address",
    "previous_values", "new_values",
)

_VERBS = {
    "Create": "created",
    "Update": "updated",
    "Delete": "deleted",
    "Approve": "approved",
    "Reject": "rejected",
    "Import": "imported",
    "Lock": "locked",
    "Unlock": "unlocked",
}

# object_type → (model, attribute used as its display name)
_NAMED_OBJECTS = {
    "InvestmentObjective": (InvestmentObjective, "title"),
    "Activity": (Activity, "title"),
    "User": (User, "full_name"),
    "Setting": (Setting, "key"),
}

_OBJECT_LABELS = {
    "InvestmentObjective": "Objective",
}


def filtered_audit_query(*, actor_id=None, action=None, object_type=None, object_id=None,
                    date_from=None, date_to=None):
    q = AuditLog.query
    if actor_id:
        q = q.filter(AuditLog.actor_id == actor_id)
    if action:
        if action not in AUDIT_ACTIONS:
            raise ValidationError("Invalid action", details={"action": f"must be one of {', '.join(sorted(AUDIT_ACTIONS))}"})
        q = q.filter(AuditLog.action == action)
    if object_type:
        if object_type not in AUDIT_OBJECT_TYPES:
            raise ValidationError("Invalid object type", details={"object_type": "unknown"})
        q = q.filter(AuditLog.object_type == object_type)
    if object_id is not None and object_id != "":
        q = q.filter(AuditLog.object_id == str(object_id))

    start = parse_date(date_from)
    if date_from and start is None:
        raise ValidationError("Invalid date", details={"date_from": "use YYYY-MM-DD"})
    if start:
        q = q.filter(AuditLog.timestamp >= datetime.combine(start, time.min, tzinfo=timezone.utc))
    end = parse_date(date_to)
    if date_to and end is None:
        raise ValidationError("Invalid date", details={"date_to": "use YYYY-MM-DD"})
    if end:
        q = q.filter(AuditLog.timestamp <= datetime.combine(end, time.max, tzinfo=timezone.utc))
    return q


def list_audit_logs(*, page=1, limit=50, **filters) -> dict:
    q = filtered_audit_query(**filters).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    result = paginate(q, page, limit)
    result["items"] = [log.to_dict() for log in result["items"]]
    return result


def value_history(object_type: str, object_id, field: str) -> list[dict]:
    """Chronological list of changes to one field of one record."""
    if not field:
        raise ValidationError("field is required", details={"field": "required"})
    logs = (
        filtered_audit_query(object_type=object_type, object_id=object_id)
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
        .all()
    )
    history = []
    for log in logs:
        new_values = log.new_values or {}
        previous_values = log.previous_values or {}
        if field not in new_values and field not in previous_values:
            continue
        history.append({
            "audit_id": log.id,
            "timestamp": iso(log.timestamp),
            "action": log.action,
            "actor_id": log.actor_id,
            "actor_name": log.actor.full_name if log.actor else "System",
            "old_value": previous_values.get(field),
            "new_value": new_values.get(field),
        })
    return history


def export_audit_csv(**filters) -> str:
    """Render the filtered audit trail as CSV text, newest first."""
    logs = filtered_audit_query(**filters).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).all()

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    for log in logs:
        writer.writerow([
            log.id,
            iso(log.timestamp) or "",
            log.actor_id or "",
            log.actor.full_name if log.actor else "System",
            log.actor_role or "",
            log.action,
            log.object_type,
            log.object_id,
            (log.comment or "").replace("\n", " "),
            log.ip_address or "",
            json.dumps(log.previous_values) if log.previous_values else "",
            json.dumps(log.new_values) if log.new_values else "",
        ])
    return buf.getvalue()


def _object_name(log: AuditLog) -> str | None:
    model_attr = _NAMED_OBJECTS.get(log.object_type)
    if model_attr is None:
        return None
    model, attr = model_attr
    values = log.new_values or log.previous_values or {}
    if attr in values:
        return str(values[attr])
    if log.object_id.isdigit():
        obj = db.session.get(model, int(log.object_id))
        if obj is not None:
            return getattr(obj, attr)
    return None


def describe(log: AuditLog) -> str:
    """Human-readable one-liner, e.g. 'Ada Obi created Activity "Borehole drilling"'."""
    actor = log.actor.full_name if log.actor else "System"
    verb = _VERBS.get(log.action, log.action.lower())
    label = _OBJECT_LABELS.get(log.object_type, log.object_type)

    if log.object_type == "Session":
        return f"{actor} logged in" if log.action == "Create" else f"{actor} logged out"

    name = _object_name(log)
    if name:
        return f'{actor} {verb} {label} "{name}"'
    return f"{actor} {verb} {label} #{log.object_id}"


def activity_feed(limit: int = 20) -> list[dict]:
    limit = min(max(int(limit or 20), 1), 100)
    logs = AuditLog.query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return [
        {
            "id": log.id,
            "timestamp": iso(log.timestamp),
            "action": log.action,
            "object_type": log.object_type,
            "object_id": log.object_id,
            "actor_id": log.actor_id,
            "description": describe(log),
        }
        for log in logs
    ]
