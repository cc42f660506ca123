"""
Activity comment blueprint.

  GET    /api/v1/activities/<id>/comments   — oldest first
  POST   /api/v1/activities/<id>/comments   — body: {"content", "parent_id"?}
  PUT    /api/v1/comments/<id>              — author or Admin
  DELETE /api/v1/comments/<id>              — author or Admin
"""

from flask import Blueprint, jsonify

from oversight.blueprints import json_body
from oversight.middleware.role_required import current_user, require_auth
from oversight.services import comment_service
from oversight.utils.errors import E, api_error

comment_bp = Blueprint("comments", __name__, url_prefix="/api/v1")


@comment_bp.route("/activities/<int:activity_id>/comments", methods=["GET"])
@require_auth
def list_comments(activity_id):
    comments = comment_service.list_comments(activity_id)
    return jsonify({"items": [c.to_dict() for c in comments], "total": len(comments)})


@comment_bp.route("/activities/<int:activity_id>/comments", methods=["POST"])
@require_auth
def create_comment(activity_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    comment = comment_service.create_comment(activity_id, data, current_user())
    return jsonify(comment.to_dict()), 201


@comment_bp.route("/comments/<int:comment_id>", methods=["PUT"])
@require_auth
def update_comment(comment_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON body required")
    comment = comment_service.update_comment(comment_id, data, current_user())
    return jsonify(comment.to_dict())


@comment_bp.route("/comments/<int:comment_id>", methods=["DELETE"])
@require_auth
def delete_comment(comment_id):
    comment_service.delete_comment(comment_id, current_user())
    return jsonify({"message": "Comment deleted"}), 200
