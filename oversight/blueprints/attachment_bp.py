"""
Attachment blueprint — supporting documents for actual spend entries.

  POST   /api/v1/attachments                       — multipart upload (file, actual_id)
  GET    /api/v1/actuals/<id>/attachments          — list for an actual
  GET    /api/v1/attachments/<id>/download         — presigned URL (S3) or file stream (local)
  DELETE /api/v1/attachments/<id>                  — soft delete
"""

from flask import Blueprint, jsonify, request, send_file

from oversight.constants import ROLE_FINANCE
from oversight.middleware.role_required import current_user, require_auth, require_roles
from oversight.services import attachment_service
from oversight.utils.errors import E, api_error

attachment_bp = Blueprint("attachments", __name__, url_prefix="/api/v1")


@attachment_bp.route("/attachments", methods=["POST"])
@require_roles(ROLE_FINANCE)
def upload_attachment():
    upload = request.files.get("file")
    if upload is None:
        return api_error(E.VALIDATION_REQUIRED, "file is required")
    actual_id = request.form.get("actual_id", type=int)
    if actual_id is None:
        return api_error(E.VALIDATION_REQUIRED, "actual_id is required")

    attachment = attachment_service.upload_attachment(actual_id, upload, current_user())
    return jsonify(attachment.to_dict()), 201


@attachment_bp.route("/actuals/<int:actual_id>/attachments", methods=["GET"])
@require_auth
def list_attachments(actual_id):
    items = attachment_service.list_attachments(actual_id)
    return jsonify({"items": [a.to_dict() for a in items], "total": len(items)})


@attachment_bp.route("/attachments/<int:attachment_id>/download", methods=["GET"])
@require_auth
def download_attachment(attachment_id):
    result = attachment_service.prepare_download(attachment_id)
    if "url" in result:
        return jsonify(result)
    attachment = result["attachment"]
    return send_file(
        result["stream"],
        mimetype=attachment.mime_type or "application/octet-stream",
        as_attachment=True,
        download_name=attachment.original_file_name,
    )


@attachment_bp.route("/attachments/<int:attachment_id>", methods=["DELETE"])
@require_roles(ROLE_FINANCE)
def delete_attachment(attachment_id):
    attachment_service.delete_attachment(attachment_id, current_user())
    return jsonify({"message": "Attachment deleted"}), 200
