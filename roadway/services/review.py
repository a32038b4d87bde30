"""
Moderation queue and admin review.

Posts that pass automated screening wait here as "pending" until an admin
approves or rejects them.

- Approval is a visibility gate only. The author's clean outcome was already
  recorded when the post was admitted, so approving does not touch trust.
- Rejection after review is a confirmed violation and counts against the
  author's trust.

Status changes are compare-and-set on status == "pending": a post can be
decided once, and a second reviewer gets a Conflict.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional

from roadway import signals
from roadway.constants import (
    DEFAULT_REJECT_REASON,
    POST_STATUS_APPROVED,
    POST_STATUS_PENDING,
    POST_STATUS_REJECTED,
)
from roadway.services import supabase_client, trust
from roadway.utils.auth import ensure_admin, is_admin
from roadway.utils.errors import Conflict, NotFound, log_info


def list_pending(requesting_user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
    """All pending posts, newest first. Admins only."""
    ensure_admin(requesting_user_id)
    return supabase_client.query_posts([POST_STATUS_PENDING], limit=limit)


def list_approved(limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
    """Publicly visible posts, newest first. No rights required."""
    return supabase_client.query_posts([POST_STATUS_APPROVED], limit=limit, offset=offset)


def list_posts(
    requesting_user_id: Optional[str] = None,
    include_pending: bool = False,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """
    Feed listing. Pending posts are included only for admins who ask for them;
    rejected posts are never listed here.
    """
    if include_pending and is_admin(requesting_user_id):
        return supabase_client.query_posts(
            [POST_STATUS_APPROVED, POST_STATUS_PENDING], limit=limit, offset=offset
        )
    return list_approved(limit=limit, offset=offset)


def get_visible_post(post_id: str, requesting_user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Fetch one post as the requester may see it.

    Non-approved posts are reported as missing to non-admins rather than
    forbidden, so their existence is not revealed.
    """
    post = supabase_client.get_post(post_id)
    if not post:
        raise NotFound("Post not found")
    if post.get("status") == POST_STATUS_APPROVED or is_admin(requesting_user_id):
        return post
    raise NotFound("Post not found")


def _decide(post_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    post = supabase_client.get_post(post_id)
    if not post:
        raise NotFound("Post not found")
    if post.get("status") != POST_STATUS_PENDING:
        raise Conflict(f"Post is already {post.get('status')}")

    updated = supabase_client.transition_post_status(post_id, POST_STATUS_PENDING, changes)
    if updated is None:
        # Lost the race to another reviewer between the read and the write
        current = supabase_client.get_post(post_id)
        if not current:
            raise NotFound("Post not found")
        raise Conflict(f"Post is already {current.get('status')}")
    return updated


def approve(post_id: str, requesting_user_id: str) -> Dict[str, Any]:
    """
    Make a pending post visible.

    Raises:
        Forbidden / NotFound: requester not an admin / unknown requester or post
        Conflict: post is not pending
    """
    ensure_admin(requesting_user_id)
    post = _decide(post_id, {
        "status": POST_STATUS_APPROVED,
        "approvedBy": requesting_user_id,
        "approvedAt": supabase_client.utcnow_iso(),
    })
    log_info("Post approved", post_id=post_id, reviewer=requesting_user_id)

    signals.emit(signals.post_reviewed, "review", post=post,
                 decision=POST_STATUS_APPROVED, reviewer_id=requesting_user_id)
    return post


def reject(post_id: str, requesting_user_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
    """
    Reject a pending post and count it against the author's trust.

    Raises:
        Forbidden / NotFound: requester not an admin / unknown requester or post
        Conflict: post is not pending
    """
    ensure_admin(requesting_user_id)
    post = _decide(post_id, {
        "status": POST_STATUS_REJECTED,
        "moderationReason": reason or DEFAULT_REJECT_REASON,
        "rejectedBy": requesting_user_id,
        "rejectedAt": supabase_client.utcnow_iso(),
    })
    log_info("Post rejected by reviewer", post_id=post_id, reviewer=requesting_user_id)

    trust.record_outcome_best_effort(post.get("author"), was_clean=False)
    signals.emit(signals.post_reviewed, "review", post=post,
                 decision=POST_STATUS_REJECTED, reviewer_id=requesting_user_id)
    return post
