"""
Donor Oversight Platform
Excel export service.

Workbooks are built in memory with openpyxl and returned as raw bytes,
ready for ``send_file``.  Every sheet gets the dark header row and
auto-sized columns.
"""

import io
import logging
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from oversight.constants import ESTIMATE_YEARS
from oversight.models.activity import Activity
from oversight.models.actual import Actual, Attachment
from oversight.models.base import iso, money
from oversight.models.objective import InvestmentObjective
from oversight.services.activity_service import filter_activities

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
OBJECTIVE_FILL = PatternFill(start_color="E8EEF4", end_color="E8EEF4", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ACTIVITY_COLUMNS = [
    "Activity ID", "Objective ID", "Objective Title", "States", "Regions",
    "Title", "Description", "Start Date", "End Date", "Status", "Progress %",
    "Lead", "Estimated Spend (USD)", "Actual Spend (USD)", "Variance (USD)",
    "Risk Rating", "Priority", "Created At",
] + [f"Estimate {year}" for year in ESTIMATE_YEARS]

ACTUAL_COLUMNS = [
    "Objective ID", "Objective Title", "Activity ID", "Activity Title",
    "Entry Date", "Amount (USD)", "Category", "Description", "Attachments",
    "Recorded At",
]

FINANCIAL_COLUMNS = [
    "Level", "ID", "Title", "Regions", "Status",
    "Estimated Spend (USD)", "Actual Spend (USD)", "Variance (USD)", "Variance (%)",
]

IMPORT_TEMPLATE_COLUMNS = [
    "objectiveId", "title", "description", "startDate", "endDate", "status",
    "progressPercent", "lead", "estimatedSpendUsd", "riskRating", "priority",
] + [f"estimate{year}" for year in ESTIMATE_YEARS]

_TEMPLATE_SAMPLES = [
    {
        "objectiveId": "OBJ-0001", "title": "Sample Activity 1",
        "description": "This is a sample activity description",
        "startDate": "2024-01-01", "endDate": "2025-12-31", "status": "Planned",
        "progressPercent": 0, "lead": "Amina Bello", "estimatedSpendUsd": 50000,
        "riskRating": "Medium", "priority": "High",
        "estimate2024": 20000, "estimate2025": 30000,
    },
    {
        "objectiveId": "OBJ-0001", "title": "Sample Activity 2",
        "description": "Another sample activity",
        "startDate": "2024-06-01", "endDate": "2024-12-31", "status": "InProgress",
        "progressPercent": 25, "lead": "Chidi Okeke", "estimatedSpendUsd": 25000,
        "riskRating": "Low", "priority": "Medium",
        "estimate2024": 25000,
    },
]

logger = logging.getLogger(__name__)


def _apply_header_style(ws, row: int, col_count: int) -> None:
    """Apply dark-header styling to an Excel row (1-indexed)."""
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value is not None:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


def _write_sheet(ws, headers: list[str], rows) -> None:
    ws.append(headers)
    _apply_header_style(ws, 1, len(headers))
    for row in rows:
        ws.append(row)
    ws.freeze_panes = "A2"
    _auto_width(ws)


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf.getvalue()


def dated_filename(prefix: str, extension: str) -> str:
    """e.g. ``activities-2024-05-01.xlsx``."""
    return f"{prefix}-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.{extension}"


def _variance_pct(estimated: float, actual: float) -> float:
    return round((actual - estimated) / estimated * 100, 2) if estimated > 0 else 0.0


# ═══════════════════════════════════════════════════════════════
# Workbooks
# ═══════════════════════════════════════════════════════════════
def export_activities_xlsx(**filters) -> bytes:
    """All live activities matching the list filters, one row each."""
    q = filter_activities(**filters).order_by(Activity.sn)

    def rows():
        for a in q.all():
            objective = a.objective
            estimates = a.annual_estimates or {}
            yield [
                a.code,
                objective.code,
                objective.title,
                ", ".join(objective.states or []),
                ", ".join(objective.regions or []),
                a.title,
                a.description or "",
                iso(a.start_date) or "",
                iso(a.end_date) or "",
                a.status,
                a.progress_percent,
                a.lead or "",
                money(a.estimated_spend_usd_total),
                money(a.actual_spend_usd_total),
                round(a.variance, 2),
                a.risk_rating or "",
                a.priority or "",
                a.created_at.strftime("%Y-%m-%d") if a.created_at else "",
            ] + [float(estimates.get(str(year), 0) or 0) for year in ESTIMATE_YEARS]

    wb = Workbook()
    ws = wb.active
    ws.title = "Activities"
    _write_sheet(ws, ACTIVITY_COLUMNS, rows())
    return _to_bytes(wb)


def export_actuals_xlsx(activity_id: int | None = None) -> bytes:
    q = (
        Actual.query_active()
        .join(Activity, Actual.activity_id == Activity.id)
        .filter(Activity.deleted_at.is_(None))
    )
    if activity_id:
        q = q.filter(Actual.activity_id == activity_id)

    def rows():
        for actual in q.order_by(Actual.entry_date.desc(), Actual.id.desc()).all():
            activity = actual.activity
            yield [
                activity.objective.code,
                activity.objective.title,
                activity.code,
                activity.title,
                iso(actual.entry_date),
                money(actual.amount_usd),
                actual.category or "",
                actual.description or "",
                actual.attachments.filter(Attachment.deleted_at.is_(None)).count(),
                actual.created_at.strftime("%Y-%m-%d %H:%M") if actual.created_at else "",
            ]

    wb = Workbook()
    ws = wb.active
    ws.title = "Actuals"
    _write_sheet(ws, ACTUAL_COLUMNS, rows())
    return _to_bytes(wb)


def export_financial_summary_xlsx() -> bytes:
    """Objective rows followed by their activity rows, with variance."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Financial Summary"

    ws["A1"] = "Financial Summary Report"
    ws["A1"].font = Font(size=14, bold=True)
    ws["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    header_row = 4
    for col, header in enumerate(FINANCIAL_COLUMNS, 1):
        ws.cell(row=header_row, column=col, value=header)
    _apply_header_style(ws, header_row, len(FINANCIAL_COLUMNS))

    row = header_row
    grand_estimated = grand_actual = 0.0
    for objective in InvestmentObjective.query_active().order_by(InvestmentObjective.sn).all():
        activities = objective.live_activities().all()
        estimated = sum(money(a.estimated_spend_usd_total) for a in activities)
        actual = sum(money(a.actual_spend_usd_total) for a in activities)
        grand_estimated += estimated
        grand_actual += actual

        row += 1
        values = ["Objective", objective.code, objective.title, ", ".join(objective.regions or []),
                  objective.status, round(estimated, 2), round(actual, 2),
                  round(actual - estimated, 2), _variance_pct(estimated, actual)]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col, value=value)
            cell.fill = OBJECTIVE_FILL
            cell.font = Font(bold=True)

        for a in activities:
            row += 1
            a_est = money(a.estimated_spend_usd_total)
            a_act = money(a.actual_spend_usd_total)
            values = ["Activity", a.code, f"  {a.title}", "", a.status,
                      a_est, a_act, round(a_act - a_est, 2), _variance_pct(a_est, a_act)]
            for col, value in enumerate(values, 1):
                ws.cell(row=row, column=col, value=value)

    row += 2
    totals = ["Total", "", "", "", "", round(grand_estimated, 2), round(grand_actual, 2),
              round(grand_actual - grand_estimated, 2), _variance_pct(grand_estimated, grand_actual)]
    for col, value in enumerate(totals, 1):
        ws.cell(row=row, column=col, value=value).font = Font(bold=True)

    _auto_width(ws)
    return _to_bytes(wb)


def generate_import_template_xlsx() -> bytes:
    """Blank activity import sheet with two sample rows."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Activities"
    _write_sheet(
        ws,
        IMPORT_TEMPLATE_COLUMNS,
        ([sample.get(col) for col in IMPORT_TEMPLATE_COLUMNS] for sample in _TEMPLATE_SAMPLES),
    )
    return _to_bytes(wb)
