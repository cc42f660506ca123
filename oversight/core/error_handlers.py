"""
Application-wide error handlers.

Service exceptions are translated here so blueprints stay free of
try/except boilerplate.  Every handler rolls back the session first:
a failed write must never leak half-applied state into the next commit.
"""

import logging

from flask import jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from oversight.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from oversight.models import db
from oversight.services.storage import StorageError
from oversight.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Attach JSON error handlers for service exceptions and HTTP errors."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_RULE, str(error), details=error.details or None)

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @app.errorhandler(StateConflictError)
    def _handle_state_conflict(error: StateConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_STATE, str(error), details=error.details or None)

    @app.errorhandler(PermissionDeniedError)
    def _handle_forbidden(error: PermissionDeniedError):
        db.session.rollback()
        return api_error(E.FORBIDDEN, str(error) or "Permission denied")

    @app.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        db.session.rollback()
        return api_error(E.UNAUTHORIZED, str(error) or "Authentication required")

    @app.errorhandler(IntegrityError)
    def _handle_integrity(error: IntegrityError):
        db.session.rollback()
        logger.warning("Integrity error on %s: %s", request.path, error.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Record conflicts with existing data")

    @app.errorhandler(StorageError)
    def _handle_storage(error: StorageError):
        db.session.rollback()
        logger.error("Storage failure on %s: %s", request.path, error)
        return api_error(E.INTERNAL, "File storage is unavailable")

    @app.errorhandler(SQLAlchemyError)
    def _handle_database(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error on %s", request.path)
        return api_error(E.DATABASE, "Database error")

    # ── HTTP errors ──────────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found", "code": E.NOT_FOUND, "path": request.path}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "Request body too large"}), 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return jsonify({"error": e.description or "Unsupported media type"}), 415

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "Too many requests", "retry_after": e.description}), 429

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
