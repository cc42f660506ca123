"""
Excel export blueprint.

    GET /api/v1/export/activities          format: xlsx | pdf (default: xlsx)
    GET /api/v1/export/actuals             format: xlsx, ?activity_id
    GET /api/v1/export/financial-summary   format: xlsx
    GET /api/v1/export/import-template     format: xlsx

Content is built in memory and returned with a dated Content-Disposition
filename, e.g. ``activities-20250301.xlsx``.
"""

import logging

from flask import Blueprint, Response, request

from oversight.middleware.role_required import require_auth
from oversight.services import export_service, report_service
from oversight.utils.errors import E, api_error

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1/export")


def file_response(content: bytes, mimetype: str, filename: str) -> Response:
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _format(allowed):
    fmt = request.args.get("format", "xlsx").lower()
    return fmt if fmt in allowed else None


def _unsupported(allowed):
    return api_error(
        E.VALIDATION_INVALID,
        f"Unsupported format. Supported values: {', '.join(allowed)}.",
        status=400,
    )


def _xlsx(content: bytes, prefix: str) -> Response:
    return file_response(content, export_service.XLSX_MIMETYPE,
                         export_service.dated_filename(prefix, "xlsx"))


def activity_filters() -> dict:
    return {
        "objective_id": request.args.get("objective_id", type=int),
        "status": request.args.get("status"),
        "lead": request.args.get("lead"),
        "start_year": request.args.get("start_year", type=int),
        "end_year": request.args.get("end_year", type=int),
        "search": request.args.get("search"),
    }


@export_bp.route("/activities", methods=["GET"])
@require_auth
def export_activities():
    allowed = ("xlsx", "pdf")
    fmt = _format(allowed)
    if fmt is None:
        return _unsupported(allowed)

    filters = activity_filters()
    if fmt == "pdf":
        content = report_service.generate_activities_pdf(**filters)
        return file_response(content, report_service.PDF_MIMETYPE,
                             export_service.dated_filename("activities", "pdf"))
    return _xlsx(export_service.export_activities_xlsx(**filters), "activities")


@export_bp.route("/actuals", methods=["GET"])
@require_auth
def export_actuals():
    if _format(("xlsx",)) is None:
        return _unsupported(("xlsx",))
    content = export_service.export_actuals_xlsx(request.args.get("activity_id", type=int))
    return _xlsx(content, "actuals")


@export_bp.route("/financial-summary", methods=["GET"])
@require_auth
def export_financial_summary():
    if _format(("xlsx",)) is None:
        return _unsupported(("xlsx",))
    return _xlsx(export_service.export_financial_summary_xlsx(), "financial-summary")


@export_bp.route("/import-template", methods=["GET"])
@require_auth
def import_template():
    if _format(("xlsx",)) is None:
        return _unsupported(("xlsx",))
    return _xlsx(export_service.generate_import_template_xlsx(), "activity-import-template")
