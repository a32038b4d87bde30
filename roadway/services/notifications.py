"""
Notification sink.

Stores in-app notifications (comment, follow, like, repost, post_approved,
post_rejected) in the notifications table and serves them back to the SPA.

Repeated notifications for the same (type, target, source, post) within
NOTIFICATION_DEDUP_MINUTES refresh the existing row instead of adding a new one,
so a burst of likes or reposts shows up once.

The moderation services never call this module directly: they emit events
(see roadway.signals) and the receivers at the bottom of this file turn them
into notifications. Delivery is best-effort.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List
from datetime import datetime, timedelta, timezone
import logging
from flask import current_app, has_app_context

from roadway import signals
from roadway.constants import (
    NOTIFICATION_POST_APPROVED,
    NOTIFICATION_POST_REJECTED,
    NOTIFICATION_REPOST,
    NOTIFICATION_TYPES,
    POST_STATUS_APPROVED,
)
from roadway.services import supabase_client
from roadway.utils.errors import NotFound, StoreUnavailable, log_info

logger = logging.getLogger(__name__)

NOTIFICATIONS_TABLE = "notifications"
DEFAULT_DEDUP_MINUTES = 60


def _safe_log_error(message: str) -> None:
    """Safely log an error, handling cases where no app context exists."""
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def _dedup_window() -> timedelta:
    minutes = DEFAULT_DEDUP_MINUTES
    if has_app_context():
        minutes = int(current_app.config.get("NOTIFICATION_DEDUP_MINUTES", minutes))
    return timedelta(minutes=minutes)


def notification_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("id"),
        "type": row.get("type"),
        "userId": row.get("target_user_id"),
        "sourceUserId": row.get("source_user_id"),
        "postId": row.get("post_id"),
        "read": bool(row.get("read")),
        "timestamp": row.get("updated_at") or row.get("created_at"),
    }


def enqueue(
    notification_type: str,
    target_user_id: str,
    source_user_id: str,
    post_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Create (or refresh) a notification.

    Args:
        notification_type: One of NOTIFICATION_TYPES
        target_user_id: User who will see the notification
        source_user_id: User whose action caused it
        post_id: Related post, if any

    Returns:
        Notification in API shape, or None when skipped (unknown type,
        self-notification)
    """
    if notification_type not in NOTIFICATION_TYPES:
        _safe_log_error(f"Unknown notification type: {notification_type!r}")
        return None
    if not target_user_id or target_user_id == source_user_id:
        return None

    supabase = supabase_client.require_admin_client()
    now = datetime.now(timezone.utc)
    since = (now - _dedup_window()).isoformat()

    try:
        query = (supabase
                 .table(NOTIFICATIONS_TABLE)
                 .select("*")
                 .eq("type", notification_type)
                 .eq("target_user_id", target_user_id)
                 .eq("source_user_id", source_user_id))
        query = query.eq("post_id", post_id) if post_id else query.is_("post_id", "null")
        existing = (query
                    .gte("created_at", since)
                    .order("created_at", desc=True)
                    .limit(1)
                    .execute())

        if existing.data:
            row = existing.data[0]
            response = (supabase
                        .table(NOTIFICATIONS_TABLE)
                        .update({"read": False, "updated_at": now.isoformat()})
                        .eq("id", row["id"])
                        .execute())
            return notification_from_row(response.data[0] if response.data else row)

        response = supabase.table(NOTIFICATIONS_TABLE).insert({
            "type": notification_type,
            "target_user_id": target_user_id,
            "source_user_id": source_user_id,
            "post_id": post_id,
            "read": False,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }).execute()
    except Exception as e:
        _safe_log_error(f"Error enqueuing notification: {e}")
        raise StoreUnavailable()

    return notification_from_row(response.data[0]) if response.data else None


def list_for_user(user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    """Notifications addressed to a user, most recently touched first."""
    supabase = supabase_client.require_admin_client()
    try:
        response = (supabase
                    .table(NOTIFICATIONS_TABLE)
                    .select("*")
                    .eq("target_user_id", user_id)
                    .order("updated_at", desc=True)
                    .limit(limit)
                    .execute())
    except Exception as e:
        _safe_log_error(f"Error fetching notifications: {e}")
        raise StoreUnavailable()
    return [notification_from_row(row) for row in (response.data or [])]


def mark_read(notification_id: str) -> Dict[str, Any]:
    supabase = supabase_client.require_admin_client()
    try:
        response = (supabase
                    .table(NOTIFICATIONS_TABLE)
                    .update({"read": True})
                    .eq("id", notification_id)
                    .execute())
    except Exception as e:
        _safe_log_error(f"Error marking notification read: {e}")
        raise StoreUnavailable()
    if not response.data:
        raise NotFound("Notification not found")
    return notification_from_row(response.data[0])


def mark_all_read(user_id: str) -> int:
    """Mark every unread notification for a user as read. Returns how many changed."""
    supabase = supabase_client.require_admin_client()
    try:
        response = (supabase
                    .table(NOTIFICATIONS_TABLE)
                    .update({"read": True})
                    .eq("target_user_id", user_id)
                    .eq("read", False)
                    .execute())
    except Exception as e:
        _safe_log_error(f"Error marking notifications read: {e}")
        raise StoreUnavailable()
    return len(response.data or [])


# ============================================================================
# Event receivers
# ============================================================================

def _on_post_admitted(sender, post: Dict[str, Any], **kwargs) -> None:
    """Notify the original author when someone else reposts their post."""
    original_id = post.get("repostOf")
    if not original_id:
        return
    original = supabase_client.get_post(original_id)
    if not original:
        log_info("Repost notification skipped: original post missing", post_id=original_id)
        return
    if original.get("author") == post.get("author"):
        return
    enqueue(NOTIFICATION_REPOST, original.get("author"), post.get("author"), post.get("id"))


def _on_post_reviewed(sender, post: Dict[str, Any], decision: str, reviewer_id: str, **kwargs) -> None:
    """Tell the author how a reviewer decided on their pending post."""
    notification_type = (
        NOTIFICATION_POST_APPROVED if decision == POST_STATUS_APPROVED else NOTIFICATION_POST_REJECTED
    )
    enqueue(notification_type, post.get("author"), reviewer_id, post.get("id"))


def register_receivers() -> None:
    """Connect the notification consumers. Safe to call more than once."""
    signals.post_admitted.connect(_on_post_admitted)
    signals.post_reviewed.connect(_on_post_reviewed)
