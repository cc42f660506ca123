"""
Activity blueprint — CRUD plus the time-boxed edit lock.

  GET    /api/v1/activities                    — list / filter / sort
  POST   /api/v1/activities                    — create (ProjectManager/Admin)
  GET    /api/v1/activities/<id>               — detail incl. lock status
  PUT    /api/v1/activities/<id>               — update (optional "version" for optimistic check)
  DELETE /api/v1/activities/<id>               — soft delete (?version=N optional)
  POST   /api/v1/activities/<id>/lock          — acquire / refresh lock
  DELETE /api/v1/activities/<id>/lock          — release lock (holder or Admin)
  GET    /api/v1/activities/<id>/lock          — lock status
"""

from flask import Blueprint, jsonify, request

from oversight.blueprints import json_body, page_args
from oversight.constants import ROLE_PROJECT_MANAGER
from oversight.middleware.role_required import current_user, require_auth, require_roles
from oversight.services import activity_service
from oversight.utils.errors import E, api_error

activity_bp = Blueprint("activities", __name__, url_prefix="/api/v1/activities")


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
@activity_bp.route("", methods=["GET"])
@require_auth
def list_activities():
    page, limit = page_args()
    return jsonify(activity_service.list_activities(
        objective_id=request.args.get("objective_id", type=int),
        status=request.args.get("status"),
        lead=request.args.get("lead"),
        start_year=request.args.get("start_year", type=int),
        end_year=request.args.get("end_year", type=int),
        search=request.args.get("search"),
        sort_by=request.args.get("sort_by", "sn"),
        sort_dir=request.args.get("sort_dir", "asc"),
        page=page,
        limit=limit,
    ))


@activity_bp.route("", methods=["POST"])
@require_roles(ROLE_PROJECT_MANAGER)
def create_activity():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    activity = activity_service.create_activity(data, current_user())
    return jsonify(activity.to_dict()), 201


@activity_bp.route("/<int:activity_id>", methods=["GET"])
@require_auth
def get_activity(activity_id):
    return jsonify(activity_service.get_activity(activity_id).to_dict())


@activity_bp.route("/<int:activity_id>", methods=["PUT"])
@require_roles(ROLE_PROJECT_MANAGER)
def update_activity(activity_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    activity = activity_service.update_activity(activity_id, data, current_user())
    return jsonify(activity.to_dict())


@activity_bp.route("/<int:activity_id>", methods=["DELETE"])
@require_roles(ROLE_PROJECT_MANAGER)
def delete_activity(activity_id):
    activity_service.delete_activity(activity_id, current_user(), request.args.get("version"))
    return jsonify({"message": "Activity deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Edit lock
# ═══════════════════════════════════════════════════════════════
@activity_bp.route("/<int:activity_id>/lock", methods=["POST"])
@require_roles(ROLE_PROJECT_MANAGER)
def lock_activity(activity_id):
    return jsonify(activity_service.lock_activity(activity_id, current_user())), 200


@activity_bp.route("/<int:activity_id>/lock", methods=["DELETE"])
@require_roles(ROLE_PROJECT_MANAGER)
def unlock_activity(activity_id):
    return jsonify(activity_service.unlock_activity(activity_id, current_user())), 200


@activity_bp.route("/<int:activity_id>/lock", methods=["GET"])
@require_auth
def lock_status(activity_id):
    return jsonify(activity_service.get_lock_status(activity_id))
