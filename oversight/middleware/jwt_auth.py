"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

The middleware never rejects a request on its own; it only populates
the request context.  Route decorators in ``role_required`` decide
whether an anonymous or expired caller gets a 401.

    g.jwt_user_id   int | None
    g.jwt_role      str | None
    g.jwt_email     str | None
    g.jwt_error     "expired" | "invalid" | None
"""

import jwt as pyjwt
from flask import g, request

from oversight.services.jwt_service import decode_access_token


# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_role = None
        g.jwt_email = None
        g.jwt_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
            g.jwt_user_id = int(payload["sub"])
            g.jwt_role = payload.get("role")
            g.jwt_email = payload.get("email")
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "expired"
        except (pyjwt.InvalidTokenError, KeyError, ValueError):
            g.jwt_error = "invalid"
