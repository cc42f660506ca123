"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/login        — Email + password → JWT pair
  POST /api/v1/auth/refresh      — Refresh token → rotated JWT pair
  POST /api/v1/auth/logout       — Revoke refresh-token session
  GET  /api/v1/auth/me           — Current user profile + preferences
  PUT  /api/v1/auth/password     — Change own password
  PUT  /api/v1/auth/preferences  — Update own email preferences
"""

from flask import Blueprint, jsonify

from oversight.blueprints import json_body, request_meta
from oversight.middleware.role_required import current_user, require_auth
from oversight.services import auth_service, user_service
from oversight.utils.errors import E, api_error

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return JWT pair.

    Body: { "email": "...", "password": "..." }
    """
    data = json_body() or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    ip, ua = request_meta()
    return jsonify(auth_service.login(email, password, ip, ua)), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    data = json_body() or {}
    refresh_token = data.get("refresh_token")
    if not refresh_token:
        return api_error(E.VALIDATION_REQUIRED, "refresh_token is required")

    ip, ua = request_meta()
    return jsonify(auth_service.refresh(refresh_token, ip, ua)), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """Revoke the given refresh token, or every session when none is sent."""
    data = json_body() or {}
    auth_service.logout(data.get("refresh_token"), current_user())
    return jsonify({"message": "Logged out"}), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    return jsonify(current_user().to_dict(include_preferences=True)), 200


@auth_bp.route("/password", methods=["PUT"])
@require_auth
def change_password():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    user_service.change_own_password(
        current_user(), data.get("current_password"), data.get("new_password"),
    )
    return jsonify({"message": "Password updated"}), 200


@auth_bp.route("/preferences", methods=["PUT"])
@require_auth
def update_preferences():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    prefs = user_service.update_preferences(current_user(), data)
    return jsonify({"preferences": prefs}), 200
