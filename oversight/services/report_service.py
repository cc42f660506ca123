"""
Donor Oversight Platform
PDF report service (reportlab platypus).

Reports:
    - Portfolio / financial report: executive summary, per-objective
      breakdown and an activity table.
    - Audit report: filtered audit trail.
    - Activities report: filtered activity register.

All builders return raw PDF bytes.
"""

import io
import logging
from datetime import datetime, timezone
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from oversight.models.activity import Activity
from oversight.models.audit import AuditLog
from oversight.models.base import iso, money
from oversight.models.objective import InvestmentObjective
from oversight.services.activity_service import filter_activities
from oversight.services.audit_service import filtered_audit_query, describe

logger = logging.getLogger(__name__)

PDF_MIMETYPE = "application/pdf"
MAX_AUDIT_ROWS = 2000

_HEADER_BG = colors.HexColor("#354A5F")
_ZEBRA_BG = colors.HexColor("#F4F6F8")


def _usd(value: float) -> str:
    return f"${value:,.2f}"


def _table(data, col_widths=None) -> Table:
    t = Table(data, repeatRows=1, colWidths=col_widths)
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), _HEADER_BG),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, _ZEBRA_BG]),
    ]))
    return t


def _build(title: str, elements: list, *, wide: bool = False) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4) if wide else A4,
        leftMargin=36,
        rightMargin=36,
        topMargin=36,
        bottomMargin=36,
        title=title,
    )
    styles = getSampleStyleSheet()
    header = [
        Paragraph(escape(title), styles["Title"]),
        Paragraph(
            f"Generated {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
            styles["Italic"],
        ),
        Spacer(1, 12),
    ]
    doc.build(header + elements)
    return buffer.getvalue()


# ═══════════════════════════════════════════════════════════════
# Portfolio / financial report
# ═══════════════════════════════════════════════════════════════
def generate_portfolio_pdf(objective_id: int | None = None) -> bytes:
    styles = getSampleStyleSheet()
    normal = styles["Normal"]

    q = InvestmentObjective.query_active().order_by(InvestmentObjective.sn)
    if objective_id:
        q = q.filter(InvestmentObjective.id == objective_id)
    objectives = q.all()

    breakdown = []
    total_estimated = total_actual = 0.0
    activity_count = 0
    for objective in objectives:
        activities = objective.live_activities().all()
        estimated = sum(money(a.estimated_spend_usd_total) for a in activities)
        actual = sum(money(a.actual_spend_usd_total) for a in activities)
        total_estimated += estimated
        total_actual += actual
        activity_count += len(activities)
        breakdown.append((objective, activities, estimated, actual))

    elements = [Paragraph("Executive Summary", styles["Heading2"])]
    variance = total_actual - total_estimated
    for line in (
        f"<b>Objectives:</b> {len(objectives)}",
        f"<b>Activities:</b> {activity_count}",
        f"<b>Total estimated spend:</b> {_usd(total_estimated)}",
        f"<b>Total actual spend:</b> {_usd(total_actual)}",
        f"<b>Variance:</b> {_usd(variance)}",
    ):
        elements.append(Paragraph(line, normal))
    elements.append(Spacer(1, 12))

    elements.append(Paragraph("Breakdown by Objective", styles["Heading2"]))
    data = [["Objective", "Title", "Status", "Regions", "Estimated", "Actual", "Variance"]]
    for objective, _, estimated, actual in breakdown:
        data.append([
            objective.code,
            Paragraph(escape(objective.title), normal),
            objective.status,
            Paragraph(escape(", ".join(objective.regions or []) or "N/A"), normal),
            _usd(estimated),
            _usd(actual),
            _usd(actual - estimated),
        ])
    elements.append(_table(data))
    elements.append(Spacer(1, 12))

    for objective, activities, _, _ in breakdown:
        elements.append(Paragraph(escape(f"{objective.code}: {objective.title}"), styles["Heading3"]))
        years = ""
        if objective.overall_start_year or objective.overall_end_year:
            years = f" | Range: {objective.overall_start_year or '?'}-{objective.overall_end_year or '?'}"
        elements.append(Paragraph(escape(f"Status: {objective.status}{years}"), normal))
        if objective.short_description:
            elements.append(Paragraph(escape(objective.short_description), normal))
        elements.append(Spacer(1, 6))
        if not activities:
            elements.append(Paragraph("<i>No activities.</i>", normal))
        else:
            data = [["Activity", "Title", "Status", "Progress", "Estimated", "Actual"]]
            for a in activities:
                data.append([
                    a.code,
                    Paragraph(escape(a.title), normal),
                    a.status,
                    f"{a.progress_percent}%",
                    _usd(money(a.estimated_spend_usd_total)),
                    _usd(money(a.actual_spend_usd_total)),
                ])
            elements.append(_table(data))
        elements.append(Spacer(1, 12))

    logger.info("Portfolio report generated (%d objectives)", len(objectives))
    return _build("Investment Portfolio Report", elements)


# ═══════════════════════════════════════════════════════════════
# Audit report
# ═══════════════════════════════════════════════════════════════
def generate_audit_pdf(**filters) -> bytes:
    styles = getSampleStyleSheet()
    normal = styles["Normal"]
    logs = (
        filtered_audit_query(**filters)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .limit(MAX_AUDIT_ROWS)
        .all()
    )

    elements = [Paragraph(f"<b>Entries:</b> {len(logs)}", normal), Spacer(1, 8)]
    data = [["Timestamp", "Actor", "Role", "Action", "Object", "Description"]]
    for log in logs:
        data.append([
            log.timestamp.strftime("%Y-%m-%d %H:%M") if log.timestamp else "",
            Paragraph(escape(log.actor.full_name if log.actor else "System"), normal),
            log.actor_role or "",
            log.action,
            f"{log.object_type} #{log.object_id}",
            Paragraph(escape(describe(log)), normal),
        ])
    elements.append(_table(data, col_widths=[90, 110, 80, 60, 130, 300]))
    return _build("Audit Trail Report", elements, wide=True)


# ═══════════════════════════════════════════════════════════════
# Activities report
# ═══════════════════════════════════════════════════════════════
def generate_activities_pdf(**filters) -> bytes:
    styles = getSampleStyleSheet()
    normal = styles["Normal"]
    activities = filter_activities(**filters).order_by(Activity.sn).all()

    data = [["Activity", "Objective", "Title", "Lead", "Start", "End", "Status",
             "Progress", "Estimated", "Actual", "Variance"]]
    for a in activities:
        data.append([
            a.code,
            a.objective.code,
            Paragraph(escape(a.title), normal),
            Paragraph(escape(a.lead or ""), normal),
            iso(a.start_date) or "",
            iso(a.end_date) or "",
            a.status,
            f"{a.progress_percent}%",
            _usd(money(a.estimated_spend_usd_total)),
            _usd(money(a.actual_spend_usd_total)),
            _usd(a.variance),
        ])
    elements = [
        Paragraph(f"<b>Activities:</b> {len(activities)}", normal),
        Spacer(1, 8),
        _table(data),
    ]
    return _build("Activities Report", elements, wide=True)
