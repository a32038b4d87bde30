"""
Supabase store access for the moderation core.

All reads and writes use the service-role client: posts (insert, fetch,
status compare-and-set, listing by status) and profiles (admin flag, trust
counters with compare-and-set). Row access control stays in Postgres RLS for
any client that is not this service.

Columns are snake_case and the SPA speaks camelCase; post_to_row /
post_from_row are the only place that mapping exists.

Every store failure is logged and raised as StoreUnavailable (HTTP 503), the
one failure allowed to fail a request.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List, Iterable
from datetime import datetime, timezone
import logging
from flask import current_app, has_app_context
from supabase import create_client, Client

from roadway.constants import POST_STATUS_PENDING
from roadway.utils.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def _log_store_error(message: str) -> None:
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def _log_store_info(message: str) -> None:
    if has_app_context():
        current_app.logger.info(message)
    else:
        logger.info(message)


# Service-role client, bound once by init_supabase()
_supabase_admin: Optional[Client] = None

POSTS_TABLE = "posts"
PROFILES_TABLE = "profiles"

# camelCase payload key -> snake_case column
_POST_COLUMNS = {
    "id": "id",
    "author": "author_id",
    "courseName": "course_name",
    "review": "review",
    "rating": "rating",
    "linkUrl": "link_url",
    "repostOf": "repost_of",
    "field": "field",
    "isCommunityPost": "is_community_post",
    "imageUrls": "image_urls",
    "likes": "likes",
    "likedBy": "liked_by",
    "status": "status",
    "moderationReason": "moderation_reason",
    "violationTypes": "violation_types",
    "approvedBy": "approved_by",
    "approvedAt": "approved_at",
    "rejectedBy": "rejected_by",
    "rejectedAt": "rejected_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

TRUST_COLUMNS = ("clean_post_count", "post_violations", "is_trusted")


def init_supabase(app) -> None:
    """
    Bind the service-role client from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY.

    Missing settings leave the client unset: the app still starts (health
    check, CLI help) and every store-backed call answers 503.
    """
    global _supabase_admin
    _supabase_admin = None

    url = app.config.get("SUPABASE_URL", "")
    service_key = app.config.get("SUPABASE_SERVICE_ROLE_KEY", "")
    if not (url and service_key):
        app.logger.warning("SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY missing; store-backed endpoints will return 503")
        return

    try:
        _supabase_admin = create_client(url, service_key)
    except Exception as e:
        app.logger.error(f"Could not create Supabase service client: {e}")
        return
    app.logger.info("Supabase service client ready")


def is_configured() -> bool:
    return _supabase_admin is not None


def require_admin_client() -> Client:
    """The service-role client, or StoreUnavailable when it is not configured."""
    if _supabase_admin is None:
        raise StoreUnavailable()
    return _supabase_admin


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

def post_to_row(post: Dict[str, Any]) -> Dict[str, Any]:
    """Map a camelCase post payload to store columns, dropping unknown keys."""
    return {
        column: post[key]
        for key, column in _POST_COLUMNS.items()
        if key in post
    }


def post_from_row(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Map a stored row back to the API shape.

    `timestamp` mirrors created_at because the SPA sorts and renders on it.
    """
    if not row:
        return None
    post = {key: row.get(column) for key, column in _POST_COLUMNS.items()}
    post["imageUrls"] = post.get("imageUrls") or []
    post["likedBy"] = post.get("likedBy") or []
    post["likes"] = post.get("likes") or 0
    post["violationTypes"] = post.get("violationTypes") or []
    post["timestamp"] = row.get("created_at")
    return post


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

def create_post(candidate: Dict[str, Any], status: str = POST_STATUS_PENDING) -> Dict[str, Any]:
    """
    Insert a screened candidate post.

    Args:
        candidate: Validated payload (see validate_post_payload)
        status: Initial status; the gate always stores "pending"

    Returns:
        Stored post in API shape

    Raises:
        StoreUnavailable: store unreachable or insert returned no row
    """
    supabase = require_admin_client()

    now = utcnow_iso()
    row = post_to_row(candidate)
    row.update({
        "status": status,
        "moderation_reason": None,
        "violation_types": [],
        "likes": 0,
        "liked_by": [],
        "created_at": now,
        "updated_at": now,
    })
    row.pop("id", None)

    try:
        response = supabase.table(POSTS_TABLE).insert(row).execute()
    except Exception as e:
        _log_store_error(f"Error creating post: {e}")
        raise StoreUnavailable()

    if not response.data:
        _log_store_error("Error creating post: insert returned no rows")
        raise StoreUnavailable()
    return post_from_row(response.data[0])


def get_post(post_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a post by id in API shape, or None if it does not exist."""
    supabase = require_admin_client()
    try:
        response = (supabase
                    .table(POSTS_TABLE)
                    .select("*")
                    .eq("id", post_id)
                    .maybe_single()
                    .execute())
    except Exception as e:
        _log_store_error(f"Error fetching post {post_id}: {e}")
        raise StoreUnavailable()
    # maybe_single() yields no response at all when zero rows match
    return post_from_row(response.data) if response else None


def query_posts(
    statuses: Iterable[str],
    limit: int = 100,
    offset: int = 0,
    author_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    List posts whose status is in `statuses`, newest first.

    Args:
        statuses: Status values to include
        limit: Maximum number of posts to return
        offset: Number of posts to skip
        author_id: Optional author filter

    Returns:
        List of posts in API shape
    """
    supabase = require_admin_client()
    statuses = list(statuses)
    try:
        query = supabase.table(POSTS_TABLE).select("*")
        if len(statuses) == 1:
            query = query.eq("status", statuses[0])
        else:
            query = query.in_("status", statuses)
        if author_id:
            query = query.eq("author_id", author_id)
        response = (query
                    .order("created_at", desc=True)
                    .range(offset, offset + limit - 1)
                    .execute())
    except Exception as e:
        _log_store_error(f"Error querying posts: {e}")
        raise StoreUnavailable()
    return [post_from_row(row) for row in (response.data or [])]


def transition_post_status(
    post_id: str,
    expected_status: str,
    changes: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Compare-and-set a post's status.

    The update only applies while the row still has `expected_status`, so two
    reviewers racing on the same post cannot both win.

    Returns:
        Updated post in API shape, or None if the row no longer matched
    """
    supabase = require_admin_client()
    row = post_to_row(changes)
    row["updated_at"] = utcnow_iso()
    try:
        response = (supabase
                    .table(POSTS_TABLE)
                    .update(row)
                    .eq("id", post_id)
                    .eq("status", expected_status)
                    .execute())
    except Exception as e:
        _log_store_error(f"Error updating post {post_id}: {e}")
        raise StoreUnavailable()
    if response.data:
        return post_from_row(response.data[0])
    return None


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def get_user_profile(user_id: str) -> Optional[Dict[str, Any]]:
    """
    Profile row for a user id.

    Returns:
        Profile row (is_admin, clean_post_count, post_violations, is_trusted, ...)
        or None if not found
    """
    supabase = require_admin_client()

    from roadway.utils.validation import is_valid_id
    if not is_valid_id(user_id):
        _log_store_info(f"Invalid id passed to get_user_profile: {user_id!r}")
        return None

    try:
        response = (supabase
                    .table(PROFILES_TABLE)
                    .select("*")
                    .eq("id", user_id)
                    .maybe_single()
                    .execute())
    except Exception as e:
        _log_store_error(f"Error fetching profile {user_id}: {e}")
        raise StoreUnavailable()
    return response.data if response else None


def compare_and_set_profile(
    user_id: str,
    expected: Dict[str, Any],
    changes: Dict[str, Any],
) -> bool:
    """
    Apply `changes` to a profile only if its trust columns still equal `expected`.

    This is the single-document compare-and-set that keeps concurrent trust
    updates for one user from overwriting each other.

    Returns:
        True if the row was updated, False if it changed underneath us
    """
    supabase = require_admin_client()
    try:
        query = supabase.table(PROFILES_TABLE).update(changes).eq("id", user_id)
        for column in TRUST_COLUMNS:
            value = expected.get(column)
            # Older profiles may predate the trust columns
            query = query.is_(column, "null") if value is None else query.eq(column, value)
        response = query.execute()
    except Exception as e:
        _log_store_error(f"Error updating trust counters for {user_id}: {e}")
        raise StoreUnavailable()
    return bool(response.data)


def set_admin_flag(user_id: str, is_admin: bool) -> Optional[Dict[str, Any]]:
    """Grant or revoke admin rights. Returns the updated profile or None if missing."""
    supabase = require_admin_client()
    try:
        response = (supabase
                    .table(PROFILES_TABLE)
                    .update({"is_admin": bool(is_admin)})
                    .eq("id", user_id)
                    .execute())
    except Exception as e:
        _log_store_error(f"Error updating admin flag for {user_id}: {e}")
        raise StoreUnavailable()
    return response.data[0] if response.data else None
