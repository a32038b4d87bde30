"""
Notification endpoints.

- GET /api/notifications/<user_id>             Latest notifications for a user
- PUT /api/notifications/<notification_id>/read
- PUT /api/notifications/<user_id>/read-all
"""

from __future__ import annotations
from flask import Blueprint, jsonify, request

from roadway.services import notifications
from roadway.utils.validation import require_id

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.route("/<user_id>", methods=["GET"])
def list_notifications(user_id: str):
    limit = max(1, min(request.args.get("limit", 50, type=int), 100))
    items = notifications.list_for_user(require_id(user_id, "userId"), limit=limit)
    return jsonify(items), 200


@notifications_bp.route("/<notification_id>/read", methods=["PUT"])
def mark_read(notification_id: str):
    item = notifications.mark_read(require_id(notification_id, "notificationId"))
    return jsonify(item), 200


@notifications_bp.route("/<user_id>/read-all", methods=["PUT"])
def mark_all_read(user_id: str):
    updated = notifications.mark_all_read(require_id(user_id, "userId"))
    return jsonify({"success": True, "updated": updated}), 200
