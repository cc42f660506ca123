"""
Notification blueprint — the caller's own in-app notifications.

  GET    /api/v1/notifications                 — list (?unread_only=true&limit=50)
  GET    /api/v1/notifications/unread-count    — badge count
  PUT    /api/v1/notifications/<id>/read       — mark one read
  PUT    /api/v1/notifications/read-all        — mark all read
  DELETE /api/v1/notifications/<id>            — delete one
"""

from flask import Blueprint, jsonify, request

from oversight.blueprints import bool_arg
from oversight.middleware.role_required import current_user, require_auth
from oversight.services.notification_service import NotificationService

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


@notification_bp.route("", methods=["GET"])
@require_auth
def list_notifications():
    user = current_user()
    items = NotificationService.list_for_user(
        user.id,
        unread_only=bool(bool_arg("unread_only")),
        limit=request.args.get("limit", 50, type=int),
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "unread_count": NotificationService.unread_count(user.id),
    })


@notification_bp.route("/unread-count", methods=["GET"])
@require_auth
def unread_count():
    return jsonify({"unread_count": NotificationService.unread_count(current_user().id)})


@notification_bp.route("/<int:notification_id>/read", methods=["PUT"])
@require_auth
def mark_read(notification_id):
    notif = NotificationService.mark_read(current_user().id, notification_id)
    return jsonify(notif.to_dict())


@notification_bp.route("/read-all", methods=["PUT"])
@require_auth
def mark_all_read():
    count = NotificationService.mark_all_read(current_user().id)
    return jsonify({"updated": count})


@notification_bp.route("/<int:notification_id>", methods=["DELETE"])
@require_auth
def delete_notification(notification_id):
    NotificationService.delete(current_user().id, notification_id)
    return jsonify({"deleted": True, "id": notification_id})
