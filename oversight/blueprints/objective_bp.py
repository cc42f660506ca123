"""
Investment objective blueprint.

  GET    /api/v1/objectives                     — list (status, region, state, start_year, end_year, search)
  POST   /api/v1/objectives                     — create (ProjectManager/Admin)
  GET    /api/v1/objectives/<id>                — detail incl. live activities
  PUT    /api/v1/objectives/<id>                — update (ProjectManager/Admin)
  DELETE /api/v1/objectives/<id>                — soft delete + cascade (ProjectManager/Admin)
  GET    /api/v1/objectives/<id>/aggregates     — per-year estimate totals
"""

from flask import Blueprint, jsonify, request

from oversight.blueprints import json_body, page_args
from oversight.constants import ROLE_PROJECT_MANAGER
from oversight.middleware.role_required import current_user, require_auth, require_roles
from oversight.services import objective_service
from oversight.utils.errors import E, api_error

objective_bp = Blueprint("objectives", __name__, url_prefix="/api/v1/objectives")


@objective_bp.route("", methods=["GET"])
@require_auth
def list_objectives():
    page, limit = page_args(default_limit=20)
    return jsonify(objective_service.list_objectives(
        status=request.args.get("status"),
        region=request.args.get("region"),
        state=request.args.get("state"),
        start_year=request.args.get("start_year", type=int),
        end_year=request.args.get("end_year", type=int),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    ))


@objective_bp.route("", methods=["POST"])
@require_roles(ROLE_PROJECT_MANAGER)
def create_objective():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    objective = objective_service.create_objective(data, current_user())
    return jsonify(objective.to_dict()), 201


@objective_bp.route("/<int:objective_id>", methods=["GET"])
@require_auth
def get_objective(objective_id):
    objective = objective_service.get_objective(objective_id)
    return jsonify(objective.to_dict(include_activities=True))


@objective_bp.route("/<int:objective_id>", methods=["PUT"])
@require_roles(ROLE_PROJECT_MANAGER)
def update_objective(objective_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    objective = objective_service.update_objective(objective_id, data, current_user())
    return jsonify(objective.to_dict())


@objective_bp.route("/<int:objective_id>", methods=["DELETE"])
@require_roles(ROLE_PROJECT_MANAGER)
def delete_objective(objective_id):
    count = objective_service.delete_objective(objective_id, current_user())
    return jsonify({"message": "Objective deleted", "deleted_activities": count}), 200


@objective_bp.route("/<int:objective_id>/aggregates", methods=["GET"])
@require_auth
def objective_aggregates(objective_id):
    return jsonify(objective_service.objective_aggregates(objective_id))
