# Overview: Flask API routes for notifications; parses input and returns JSON responses.

# backend/stockpos/routes/notifications.py
"""
Notification feed routes.

The feed includes the caller's own notifications plus broadcast ones
(owner_id NULL), newest first.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..services import notification_service
from ..decorators import require_owner
from stockpos.time_utils import to_epoch_ms, utcnow


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_owner
def list_notifications_route():
    """
    Query params:
    - grouped: 1 to bucket into Today / Yesterday / This Week
    - limit: int (optional)
    """
    limit = request.args.get("limit", type=int)
    grouped = request.args.get("grouped", "").lower() in ("1", "true", "yes")

    now = utcnow()
    now_ms = to_epoch_ms(now)
    notifications = notification_service.list_notifications(g.owner_id, limit=limit)

    if grouped:
        groups = notification_service.group_notifications_by_date(notifications, now=now)
        return jsonify({
            "groups": {
                label: [n.to_dict(now_ms) for n in items]
                for label, items in groups.items()
            },
            "count": len(notifications),
        }), 200

    return jsonify({
        "items": [n.to_dict(now_ms) for n in notifications],
        "count": len(notifications),
    }), 200


@notifications_bp.get("/unread-count")
@require_owner
def unread_count_route():
    return jsonify({"unread": notification_service.unread_count(g.owner_id)}), 200


@notifications_bp.post("/<int:notification_id>/read")
@require_owner
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id, g.owner_id)
        if not notification:
            return jsonify({"error": "Notification not found"}), 404
        return jsonify({"notification": notification.to_dict()}), 200
    except Exception:
        current_app.logger.exception("Failed to mark notification read")
        return jsonify({"error": "Internal server error"}), 500
