"""
Activity import blueprint (Admin).

  POST /api/v1/import/activities/preview   — validate an .xlsx upload, nothing is written
  POST /api/v1/import/activities           — create all rows, or none when any row fails

Both take multipart form data with the workbook under ``file``.
"""

import logging

from flask import Blueprint, jsonify, request

from oversight.constants import ROLE_ADMIN
from oversight.middleware.role_required import current_user, require_roles
from oversight.services import import_service
from oversight.utils.errors import E, api_error

logger = logging.getLogger(__name__)

import_bp = Blueprint("import", __name__, url_prefix="/api/v1/import")

_ALLOWED_EXTENSIONS = (".xlsx",)


def _upload():
    """Uploaded workbook bytes, or an error response tuple."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return None, api_error(E.VALIDATION_REQUIRED, "file is required")
    if not upload.filename.lower().endswith(_ALLOWED_EXTENSIONS):
        return None, api_error(E.VALIDATION_INVALID, "Only .xlsx files are supported")
    return upload.read(), None


@import_bp.route("/activities/preview", methods=["POST"])
@require_roles(ROLE_ADMIN)
def preview():
    content, error = _upload()
    if error:
        return error
    return jsonify(import_service.preview_import(content))


@import_bp.route("/activities", methods=["POST"])
@require_roles(ROLE_ADMIN)
def run_import():
    content, error = _upload()
    if error:
        return error
    result = import_service.import_activities(content, current_user())
    if not result["success"]:
        return jsonify(result), 422
    return jsonify(result), 201
