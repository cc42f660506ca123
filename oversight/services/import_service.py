"""
Donor Oversight Platform
Activity import from Excel.

Flow:
    1. ``preview_import`` parses the first sheet and validates every row,
       returning ``{success, success_count, error_count, errors, preview}``.
       Nothing is written.
    2. ``import_activities`` re-validates and, only when the whole file is
       clean, creates every activity in one transaction (audited as
       ``Import``), recomputes objective totals and notifies the importer.

Row numbers in errors are Excel row numbers (header is row 1).
"""

import io
import logging
import re
import zipfile
from decimal import Decimal

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from oversight.constants import ACTIVITY_STATUSES, ESTIMATE_YEARS, PRIORITY_LEVELS, RISK_RATINGS
from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.audit import write_audit
from oversight.models.base import iso
from oversight.models.objective import InvestmentObjective
from oversight.services.notification_service import NotificationService
from oversight.services.objective_service import recompute_objective_spend
from oversight.utils.helpers import parse_date_input, parse_money

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 10
ESTIMATE_TOLERANCE = Decimal("0.01")

_ESTIMATE_COLUMN = re.compile(r"^estimate\s*(\d{4})$", re.IGNORECASE)
_OBJECTIVE_CODE = re.compile(r"^(?:OBJ-)?(\d+)$", re.IGNORECASE)


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value) -> str | None:
    if _blank(value):
        return None
    return str(value).strip()


def read_rows(content: bytes) -> list[tuple[int, dict]]:
    """Return ``(excel_row_number, {header: value})`` for each non-blank data row.

    Raises ValueError when the file is not a readable .xlsx workbook.
    """
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ValueError("Failed to parse Excel file") from exc

    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        columns = [str(h).strip() if h is not None else "" for h in header]
        out = []
        for offset, values in enumerate(rows):
            if values is None or all(_blank(v) for v in values):
                continue
            out.append((offset + 2, {col: val for col, val in zip(columns, values) if col}))
        return out
    finally:
        wb.close()


def _validate_row(row_num: int, row: dict, objectives: dict) -> tuple[dict | None, list[dict]]:
    errors = []

    def err(field, message):
        errors.append({"row": row_num, "field": field, "message": message})

    cleaned = {}

    code = _text(row.get("objectiveId"))
    if code is None:
        err("objectiveId", "Required field")
    else:
        match = _OBJECTIVE_CODE.match(code)
        if not match:
            err("objectiveId", "Invalid format (use OBJ-0001)")
        else:
            objective = objectives.get(int(match.group(1)))
            if objective is None:
                err("objectiveId", "Objective not found")
            else:
                cleaned["objective_id"] = objective.id
                cleaned["objective_code"] = objective.code

    title = _text(row.get("title"))
    if title is None:
        err("title", "Required field")
    elif len(title) > 300:
        err("title", "Must be at most 300 characters")
    else:
        cleaned["title"] = title

    cleaned["description"] = _text(row.get("description"))
    cleaned["lead"] = _text(row.get("lead"))

    for column, field in (("startDate", "start_date"), ("endDate", "end_date")):
        try:
            cleaned[field] = parse_date_input(None if _blank(row.get(column)) else row.get(column))
        except ValueError:
            err(column, "Invalid date format (use YYYY-MM-DD)")
    if cleaned.get("start_date") and cleaned.get("end_date") and cleaned["end_date"] < cleaned["start_date"]:
        err("endDate", "End date must be on or after start date")

    for column, field, allowed in (("status", "status", ACTIVITY_STATUSES),
                                   ("riskRating", "risk_rating", RISK_RATINGS),
                                   ("priority", "priority", PRIORITY_LEVELS)):
        value = _text(row.get(column))
        if value is not None and value not in allowed:
            err(column, f"Must be one of: {', '.join(allowed)}")
        else:
            cleaned[field] = value
    cleaned["status"] = cleaned.get("status") or "Planned"

    progress = row.get("progressPercent")
    cleaned["progress_percent"] = 0
    if not _blank(progress):
        try:
            pct = float(progress)
        except (TypeError, ValueError):
            pct = None
        if pct is None or not 0 <= pct <= 100 or pct != int(pct):
            err("progressPercent", "Must be a whole number between 0 and 100")
        else:
            cleaned["progress_percent"] = int(pct)

    total = None
    if not _blank(row.get("estimatedSpendUsd")):
        try:
            total = parse_money(row.get("estimatedSpendUsd"))
        except ValueError:
            err("estimatedSpendUsd", "Must be a number")
        else:
            if total < 0:
                err("estimatedSpendUsd", "Must be zero or a positive number")
                total = None

    estimates = {}
    for column, value in row.items():
        match = _ESTIMATE_COLUMN.match(column)
        if not match or _blank(value):
            continue
        year = int(match.group(1))
        if year not in ESTIMATE_YEARS:
            err(column, f"Year must be between {ESTIMATE_YEARS[0]} and {ESTIMATE_YEARS[-1]}")
            continue
        try:
            amount = parse_money(value)
        except ValueError:
            err(column, "Must be a number")
            continue
        if amount < 0:
            err(column, "Must be zero or a positive number")
        elif amount > 0:
            estimates[str(year)] = amount

    estimate_sum = sum(estimates.values(), Decimal("0"))
    if total is None:
        total = estimate_sum.quantize(ESTIMATE_TOLERANCE)
    elif estimates and abs(estimate_sum - total) > ESTIMATE_TOLERANCE:
        err("estimatedSpendUsd",
            f"Sum of annual estimates ({estimate_sum:,.2f}) doesn't match total ({total:,.2f})")
    cleaned["estimated_spend_usd_total"] = total
    cleaned["annual_estimates"] = {y: float(a) for y, a in sorted(estimates.items())}

    return (None, errors) if errors else (cleaned, [])


def _serialise(row_num: int, cleaned: dict) -> dict:
    return {
        "row": row_num,
        "objective_code": cleaned["objective_code"],
        "title": cleaned["title"],
        "description": cleaned["description"],
        "start_date": iso(cleaned.get("start_date")),
        "end_date": iso(cleaned.get("end_date")),
        "status": cleaned["status"],
        "progress_percent": cleaned["progress_percent"],
        "lead": cleaned["lead"],
        "estimated_spend_usd_total": float(cleaned["estimated_spend_usd_total"]),
        "annual_estimates": cleaned["annual_estimates"],
        "risk_rating": cleaned.get("risk_rating"),
        "priority": cleaned.get("priority"),
    }


def _validate(content: bytes) -> tuple[list[tuple[int, dict]], list[dict]]:
    try:
        rows = read_rows(content)
    except ValueError as exc:
        return [], [{"row": 0, "field": "file", "message": str(exc)}]
    if not rows:
        return [], [{"row": 0, "field": "file", "message": "The first sheet contains no data rows"}]

    objectives = {o.sn: o for o in InvestmentObjective.query_active().all()}
    valid, errors = [], []
    for row_num, row in rows:
        cleaned, row_errors = _validate_row(row_num, row, objectives)
        if row_errors:
            errors.extend(row_errors)
        else:
            valid.append((row_num, cleaned))
    return valid, errors


def preview_import(content: bytes) -> dict:
    valid, errors = _validate(content)
    return {
        "success": not errors,
        "success_count": len(valid),
        "error_count": len(errors),
        "errors": errors,
        "preview": [_serialise(n, c) for n, c in valid[:PREVIEW_ROWS]],
    }


def import_activities(content: bytes, user) -> dict:
    """Create every row's activity, or nothing if any row is invalid."""
    valid, errors = _validate(content)
    if errors:
        return {
            "success": False,
            "success_count": 0,
            "error_count": len(errors),
            "errors": errors,
            "created": [],
        }

    created = []
    touched_objectives = set()
    for _, cleaned in valid:
        activity = Activity(
            sn=Activity.next_sn(),
            objective_id=cleaned["objective_id"],
            title=cleaned["title"],
            description=cleaned["description"],
            start_date=cleaned.get("start_date"),
            end_date=cleaned.get("end_date"),
            status=cleaned["status"],
            progress_percent=cleaned["progress_percent"],
            lead=cleaned["lead"],
            estimated_spend_usd_total=cleaned["estimated_spend_usd_total"],
            actual_spend_usd_total=Decimal("0.00"),
            annual_estimates=cleaned["annual_estimates"],
            risk_rating=cleaned.get("risk_rating"),
            priority=cleaned.get("priority"),
            version=1,
            created_by_id=user.id,
            updated_by_id=user.id,
        )
        db.session.add(activity)
        db.session.flush()
        write_audit(action="Import", object_type="Activity", object_id=activity.id,
                    new_values={"title": activity.title,
                                "objective_id": activity.objective_id,
                                "estimated_spend_usd_total": activity.estimated_spend_usd_total})
        touched_objectives.add(activity.objective_id)
        created.append(activity)

    for objective_id in touched_objectives:
        recompute_objective_spend(objective_id)

    NotificationService.create(
        user_id=user.id,
        type="ImportComplete",
        title="Import Complete",
        message=f"{len(created)} activities imported successfully",
        link="/activities",
    )
    db.session.commit()

    logger.info("Imported %d activities", len(created), extra={"user_id": user.id})
    return {
        "success": True,
        "success_count": len(created),
        "error_count": 0,
        "errors": [],
        "created": [{"id": a.id, "code": a.code, "title": a.title} for a in created],
    }
