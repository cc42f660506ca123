"""
User administration blueprint (Admin only).

  GET    /api/v1/users                         — list (role, is_active, search, page, limit)
  POST   /api/v1/users                         — create
  GET    /api/v1/users/<id>                    — detail
  PUT    /api/v1/users/<id>                    — update profile / role / active / preferences
  POST   /api/v1/users/<id>/reset-password     — admin password reset
"""

from flask import Blueprint, jsonify, request

from oversight.blueprints import bool_arg, json_body, page_args
from oversight.constants import ROLE_ADMIN
from oversight.middleware.role_required import require_roles
from oversight.services import user_service
from oversight.utils.errors import E, api_error

user_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


@user_bp.route("", methods=["GET"])
@require_roles(ROLE_ADMIN)
def list_users():
    page, limit = page_args()
    return jsonify(user_service.list_users(
        role=request.args.get("role"),
        is_active=bool_arg("is_active"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    ))


@user_bp.route("", methods=["POST"])
@require_roles(ROLE_ADMIN)
def create_user():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    user = user_service.create_user(data)
    return jsonify(user.to_dict(include_preferences=True)), 201


@user_bp.route("/<int:user_id>", methods=["GET"])
@require_roles(ROLE_ADMIN)
def get_user(user_id):
    return jsonify(user_service.get_user_by_id(user_id).to_dict(include_preferences=True))


@user_bp.route("/<int:user_id>", methods=["PUT"])
@require_roles(ROLE_ADMIN)
def update_user(user_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    user = user_service.update_user(user_id, data)
    return jsonify(user.to_dict(include_preferences=True))


@user_bp.route("/<int:user_id>/reset-password", methods=["POST"])
@require_roles(ROLE_ADMIN)
def reset_password(user_id):
    data = json_body() or {}
    if not data.get("password"):
        return api_error(E.VALIDATION_REQUIRED, "password is required")
    user_service.reset_password(user_id, data["password"])
    return jsonify({"message": "Password reset"}), 200
