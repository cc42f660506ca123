"""
Actual spend blueprint.

  GET    /api/v1/activities/<id>/actuals   — list for an activity (any authenticated user)
  POST   /api/v1/actuals                   — create (Finance/Admin)
  GET    /api/v1/actuals/<id>              — detail
  PUT    /api/v1/actuals/<id>              — update (Finance/Admin)
  DELETE /api/v1/actuals/<id>              — soft delete (Finance/Admin)
"""

from flask import Blueprint, jsonify

from oversight.blueprints import json_body
from oversight.constants import ROLE_FINANCE
from oversight.middleware.role_required import current_user, require_auth, require_roles
from oversight.services import actual_service
from oversight.utils.errors import E, api_error

actual_bp = Blueprint("actuals", __name__, url_prefix="/api/v1")


@actual_bp.route("/activities/<int:activity_id>/actuals", methods=["GET"])
@require_auth
def list_actuals(activity_id):
    actuals = actual_service.list_actuals(activity_id)
    return jsonify({"items": [a.to_dict() for a in actuals], "total": len(actuals)})


@actual_bp.route("/actuals", methods=["POST"])
@require_roles(ROLE_FINANCE)
def create_actual():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    actual = actual_service.create_actual(data, current_user())
    return jsonify(actual.to_dict()), 201


@actual_bp.route("/actuals/<int:actual_id>", methods=["GET"])
@require_auth
def get_actual(actual_id):
    return jsonify(actual_service.get_actual(actual_id).to_dict())


@actual_bp.route("/actuals/<int:actual_id>", methods=["PUT"])
@require_roles(ROLE_FINANCE)
def update_actual(actual_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    actual = actual_service.update_actual(actual_id, data, current_user())
    return jsonify(actual.to_dict())


@actual_bp.route("/actuals/<int:actual_id>", methods=["DELETE"])
@require_roles(ROLE_FINANCE)
def delete_actual(actual_id):
    actual_service.delete_actual(actual_id, current_user())
    return jsonify({"message": "Actual deleted"}), 200
