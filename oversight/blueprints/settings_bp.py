"""
Settings blueprint.

  GET    /api/v1/settings               — all settings, secrets masked (Admin)
  POST   /api/v1/settings               — bulk upsert {key: value, ...} (Admin)
  GET    /api/v1/settings/<key>         — one setting (any authenticated user)
  PUT    /api/v1/settings/<key>         — upsert {"value": ...} (Admin)
  DELETE /api/v1/settings/<key>         — delete (Admin)
  POST   /api/v1/settings/seed          — insert missing defaults (Admin)
  POST   /api/v1/settings/test-email    — SMTP check, optional {"to": "..."} test send (Admin)
"""

from flask import Blueprint, jsonify

from oversight.blueprints import json_body
from oversight.constants import ROLE_ADMIN
from oversight.middleware.role_required import current_user, require_auth, require_roles
from oversight.models import db
from oversight.services import settings_service
from oversight.services.email_service import EmailService
from oversight.utils.errors import E, api_error

settings_bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")


@settings_bp.route("", methods=["GET"])
@require_roles(ROLE_ADMIN)
def list_settings():
    return jsonify(settings_service.get_all_settings())


@settings_bp.route("", methods=["POST"])
@require_roles(ROLE_ADMIN)
def bulk_update_settings():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON object of settings required")
    return jsonify(settings_service.set_many(data, current_user().id))


@settings_bp.route("/seed", methods=["POST"])
@require_roles(ROLE_ADMIN)
def seed_settings():
    return jsonify({"created": settings_service.seed_defaults()})


@settings_bp.route("/test-email", methods=["POST"])
@require_roles(ROLE_ADMIN)
def test_email():
    data = json_body() or {}
    result = EmailService.test_connection()
    to_email = (data.get("to") or "").strip()
    if result["success"] and to_email:
        log = EmailService.send_from_template(
            to_email=to_email,
            template_name="notification",
            context={"title": "Test email",
                     "message": "SMTP settings are working."},
        )
        db.session.commit()
        result["email_status"] = log.status if log else None
    return jsonify(result), 200 if result["success"] else 502


@settings_bp.route("/<key>", methods=["GET"])
@require_auth
def get_setting(key):
    return jsonify(settings_service.get_public_setting(key))


@settings_bp.route("/<key>", methods=["PUT"])
@require_roles(ROLE_ADMIN)
def put_setting(key):
    data = json_body()
    if data is None or "value" not in data:
        return api_error(E.VALIDATION_REQUIRED, "value is required")
    return jsonify(settings_service.set_setting(key, data["value"], current_user().id))


@settings_bp.route("/<key>", methods=["DELETE"])
@require_roles(ROLE_ADMIN)
def delete_setting(key):
    settings_service.delete_setting(key)
    return jsonify({"message": "Setting deleted", "key": key})
