"""
Approval workflow blueprint.

  GET  /api/v1/approvals                          — list (state, target_type, target_id, submitted_by)
  GET  /api/v1/approvals/pending                  — waiting on the caller's role
  POST /api/v1/approvals                          — submit (any authenticated user)
  GET  /api/v1/approvals/<id>                     — detail incl. history
  POST /api/v1/approvals/<id>/finance-approve     — Finance/Admin
  POST /api/v1/approvals/<id>/committee-approve   — CommitteeMember/Admin
  POST /api/v1/approvals/<id>/reject              — body: {"reason": "..."}

Which role may reject depends on the approval's current state, so that
check lives in the service.
"""

from flask import Blueprint, jsonify, request

from oversight.blueprints import json_body, page_args
from oversight.constants import ROLE_COMMITTEE, ROLE_FINANCE
from oversight.middleware.role_required import current_user, require_auth, require_roles
from oversight.services import approval_service
from oversight.utils.errors import E, api_error

approval_bp = Blueprint("approvals", __name__, url_prefix="/api/v1/approvals")


@approval_bp.route("", methods=["GET"])
@require_auth
def list_approvals():
    page, limit = page_args()
    return jsonify(approval_service.list_approvals(
        state=request.args.get("state"),
        target_type=request.args.get("target_type"),
        target_id=request.args.get("target_id", type=int),
        submitted_by=request.args.get("submitted_by", type=int),
        page=page,
        limit=limit,
    ))


@approval_bp.route("/pending", methods=["GET"])
@require_auth
def pending_approvals():
    items = approval_service.pending_for(current_user())
    return jsonify({"items": [a.to_dict() for a in items], "total": len(items)})


@approval_bp.route("", methods=["POST"])
@require_auth
def submit_approval():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    approval = approval_service.submit_approval(data, current_user())
    return jsonify(approval.to_dict()), 201


@approval_bp.route("/<int:approval_id>", methods=["GET"])
@require_auth
def get_approval(approval_id):
    return jsonify(approval_service.get_approval(approval_id).to_dict())


# ═══════════════════════════════════════════════════════════════
# Decisions
# ═══════════════════════════════════════════════════════════════
@approval_bp.route("/<int:approval_id>/finance-approve", methods=["POST"])
@require_roles(ROLE_FINANCE)
def finance_approve(approval_id):
    data = json_body() or {}
    approval = approval_service.finance_approve(approval_id, current_user(), data.get("comment"))
    return jsonify(approval.to_dict())


@approval_bp.route("/<int:approval_id>/committee-approve", methods=["POST"])
@require_roles(ROLE_COMMITTEE)
def committee_approve(approval_id):
    data = json_body() or {}
    approval = approval_service.committee_approve(approval_id, current_user(), data.get("comment"))
    return jsonify(approval.to_dict())


@approval_bp.route("/<int:approval_id>/reject", methods=["POST"])
@require_roles(ROLE_FINANCE, ROLE_COMMITTEE)
def reject_approval(approval_id):
    data = json_body() or {}
    approval = approval_service.reject_approval(approval_id, current_user(), data.get("reason"))
    return jsonify(approval.to_dict())
