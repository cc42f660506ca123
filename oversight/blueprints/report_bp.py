"""
PDF report blueprint (reportlab).

  GET /api/v1/reports/portfolio      — executive summary + objective breakdown (any role)
  GET /api/v1/reports/audit          — audit trail (Admin, Auditor)
  GET /api/v1/reports/activities     — activity register (PM, Finance, Committee, Admin)
"""

from flask import Blueprint, request

from oversight.blueprints.export_bp import activity_filters, file_response
from oversight.constants import ROLE_AUDITOR, ROLE_COMMITTEE, ROLE_FINANCE, ROLE_PROJECT_MANAGER
from oversight.middleware.role_required import require_auth, require_roles
from oversight.services import report_service
from oversight.services.export_service import dated_filename

report_bp = Blueprint("reports", __name__, url_prefix="/api/v1/reports")


def _pdf(content: bytes, prefix: str):
    return file_response(content, report_service.PDF_MIMETYPE, dated_filename(prefix, "pdf"))


@report_bp.route("/portfolio", methods=["GET"])
@require_auth
def portfolio_report():
    content = report_service.generate_portfolio_pdf(request.args.get("objective_id", type=int))
    return _pdf(content, "portfolio-report")


@report_bp.route("/audit", methods=["GET"])
@require_roles(ROLE_AUDITOR)
def audit_report():
    content = report_service.generate_audit_pdf(
        actor_id=request.args.get("actor_id", type=int),
        action=request.args.get("action"),
        object_type=request.args.get("object_type"),
        object_id=request.args.get("object_id"),
        date_from=request.args.get("date_from"),
        date_to=request.args.get("date_to"),
    )
    return _pdf(content, "audit-report")


@report_bp.route("/activities", methods=["GET"])
@require_roles(ROLE_PROJECT_MANAGER, ROLE_FINANCE, ROLE_COMMITTEE)
def activities_report():
    return _pdf(report_service.generate_activities_pdf(**activity_filters()), "activities-report")
