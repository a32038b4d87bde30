"""
Post endpoints used by the SPA.

Endpoints:
- GET  /api/posts                 Approved feed (admins may add ?includePending=true)
- GET  /api/posts/<id>            Single post, visibility-checked
- POST /api/posts                 Submit a post through the admission gate
- POST /api/posts/<id>/approve    Admin: approve a pending post
- POST /api/posts/<id>/reject     Admin: reject a pending post

Errors raised by the services (ValidationError, Forbidden, NotFound, Conflict,
StoreUnavailable) are rendered by the app-level error handler.
"""

from __future__ import annotations
from flask import Blueprint, jsonify, request

from roadway.extensions import config_limit, limiter
from roadway.services import gate, review, supabase_client
from roadway.utils.auth import requester_id
from roadway.utils.errors import NotFound, ValidationError
from roadway.utils.validation import normalize_reason, require_id, validate_post_payload

posts_bp = Blueprint("posts", __name__, url_prefix="/api/posts")

MAX_PAGE_SIZE = 200

REJECTED_ERROR = "Your post was not published because it violates community guidelines."


def _page_args() -> tuple[int, int]:
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")
    return data


@posts_bp.route("", methods=["GET"])
def list_posts():
    """
    Feed listing, newest first.

    Query:
        userId: optional requester; admins with includePending=true also see pending posts
        includePending: "true" to include pending posts (admins only)
        limit, offset: pagination
    """
    limit, offset = _page_args()
    include_pending = request.args.get("includePending", "").lower() == "true"
    posts = review.list_posts(
        requesting_user_id=request.args.get("userId") or None,
        include_pending=include_pending,
        limit=limit,
        offset=offset,
    )
    return jsonify(posts), 200


@posts_bp.route("/<post_id>", methods=["GET"])
def get_post(post_id: str):
    post_id = require_id(post_id, "postId")
    post = review.get_visible_post(post_id, request.args.get("userId") or None)
    return jsonify(post), 200


@posts_bp.route("", methods=["POST"])
@limiter.limit(config_limit("POST_SUBMIT_RATE_LIMIT", "10 per minute"))
def create_post():
    """
    Submit a post.

    Request body (JSON):
        {
            "author": "<userId>",
            "courseName": "...",
            "review": "...",
            "rating": 1-5,
            "linkUrl": "https://..." (optional),
            "repostOf": "<postId>" (optional)
        }

    Returns:
        201: stored post with status "pending"
        400: {"success": false, "error", "reason", "violationTypes"} when screening rejects it,
             or {"success": false, "error"} for invalid input
        404: author unknown
    """
    candidate = validate_post_payload(_json_body())

    if not supabase_client.get_user_profile(candidate["author"]):
        raise NotFound("User not found")

    result = gate.admit(candidate)
    if not result.accepted:
        return jsonify({
            "success": False,
            "error": REJECTED_ERROR,
            "reason": result.reason,
            "violationTypes": result.violation_types,
        }), 400

    return jsonify(result.post), 201


@posts_bp.route("/<post_id>/approve", methods=["POST"])
def approve_post(post_id: str):
    """Body: {"userId": "<adminId>"}. Returns the approved post."""
    _json_body()
    post_id = require_id(post_id, "postId")
    post = review.approve(post_id, requester_id())
    return jsonify(post), 200


@posts_bp.route("/<post_id>/reject", methods=["POST"])
def reject_post(post_id: str):
    """Body: {"userId": "<adminId>", "reason": "..." (optional)}. Returns the rejected post."""
    data = _json_body()
    post_id = require_id(post_id, "postId")
    post = review.reject(post_id, requester_id(), normalize_reason(data.get("reason")))
    return jsonify(post), 200
