"""
Audit blueprint.

Endpoints:
    GET  /api/v1/audit                  — list / filter (Admin, Auditor)
    GET  /api/v1/audit/history          — field value history (Admin, Auditor)
    GET  /api/v1/audit/export           — CSV export (Admin, Auditor)
    GET  /api/v1/audit/feed             — latest activity feed (any authenticated user)
"""

from flask import Blueprint, Response, jsonify, request

from oversight.blueprints import page_args
from oversight.constants import ROLE_AUDITOR
from oversight.middleware.role_required import require_auth, require_roles
from oversight.services import audit_service
from oversight.services.export_service import dated_filename
from oversight.utils.errors import E, api_error

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1/audit")


def _filters() -> dict:
    return {
        "actor_id": request.args.get("actor_id", type=int),
        "action": request.args.get("action"),
        "object_type": request.args.get("object_type"),
        "object_id": request.args.get("object_id"),
        "date_from": request.args.get("date_from"),
        "date_to": request.args.get("date_to"),
    }


@audit_bp.route("", methods=["GET"])
@require_roles(ROLE_AUDITOR)
def list_audit_logs():
    page, limit = page_args()
    return jsonify(audit_service.list_audit_logs(page=page, limit=limit, **_filters()))


@audit_bp.route("/history", methods=["GET"])
@require_roles(ROLE_AUDITOR)
def value_history():
    object_type = request.args.get("object_type")
    object_id = request.args.get("object_id")
    field = request.args.get("field")
    if not object_type or not object_id or not field:
        return api_error(E.VALIDATION_REQUIRED, "object_type, object_id and field are required")
    return jsonify({
        "object_type": object_type,
        "object_id": object_id,
        "field": field,
        "history": audit_service.value_history(object_type, object_id, field),
    })


@audit_bp.route("/export", methods=["GET"])
@require_roles(ROLE_AUDITOR)
def export_csv():
    csv_text = audit_service.export_audit_csv(**_filters())
    return Response(
        csv_text,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{dated_filename("audit-log", "csv")}"'},
    )


@audit_bp.route("/feed", methods=["GET"])
@require_auth
def activity_feed():
    return jsonify({"items": audit_service.activity_feed(request.args.get("limit", 20, type=int))})
