"""
Role Decorators — JWT-aware RBAC decorators for route protection.

Usage:
    @bp.route("/activities/<int:activity_id>", methods=["PUT"])
    @require_roles(ROLE_PROJECT_MANAGER)
    def update_activity(activity_id):
        ...

    @bp.route("/dashboard/kpis", methods=["GET"])
    @require_auth
    def kpis():
        ...

``require_roles`` implies ``require_auth``.  Admin passes every role
check.  The authenticated ``User`` row is exposed as ``g.current_user``.
"""

import functools
import logging

from flask import g, jsonify

from oversight.models import db
from oversight.models.user import User
from oversight.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _authenticate():
    """Resolve the JWT caller to an active user, or return a 401 response."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        if getattr(g, "jwt_error", None) == "expired":
            return api_error(E.UNAUTHORIZED, "Token expired")
        return api_error(E.UNAUTHORIZED, "Authentication required")

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return api_error(E.UNAUTHORIZED, "Account is inactive or no longer exists")

    # Role changes take effect immediately, not at token expiry
    g.current_user = user
    g.jwt_role = user.role
    return None


def require_auth(f):
    """Decorator: require a valid access token for an active user."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        denied = _authenticate()
        if denied is not None:
            return denied
        return f(*args, **kwargs)
    return decorated


def require_roles(*roles: str):
    """
    Decorator: require the JWT user to hold one of *roles*.

    Admin bypasses the check.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            denied = _authenticate()
            if denied is not None:
                return denied

            user = g.current_user
            if not user.is_admin and user.role not in roles:
                logger.warning(
                    "User %d (%s) denied: needs any of %s on %s",
                    user.id, user.role, roles, f.__name__,
                )
                return jsonify({
                    "error": "Permission denied",
                    "code": E.FORBIDDEN,
                    "required_any": list(roles),
                }), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


def current_user() -> User:
    """Return the user resolved by ``require_auth`` / ``require_roles``."""
    return g.current_user
