"""
Admin moderation endpoints.

Provides:
- GET  /api/admin/pending-posts?userId=   Review queue (newest first)
- POST /api/admin/check-link              Run the link checker on demand
- GET  /api/admin/users/<id>/trust        Trust counters for a user
"""

from __future__ import annotations
from flask import Blueprint, jsonify, request

from roadway.extensions import config_limit, limiter
from roadway.services import link_safety, review, trust
from roadway.utils.auth import require_admin
from roadway.utils.errors import ValidationError
from roadway.utils.validation import require_id

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/pending-posts", methods=["GET"])
def pending_posts():
    """
    Returns:
        200: list of pending posts
        400: userId missing
        403: requester is not an admin
        404: requester unknown
    """
    limit = max(1, min(request.args.get("limit", 100, type=int), 200))
    posts = review.list_pending(request.args.get("userId"), limit=limit)
    return jsonify(posts), 200


@admin_bp.route("/check-link", methods=["POST"])
@limiter.limit(config_limit("CHECK_LINK_RATE_LIMIT", "20 per minute"))
@require_admin
def check_link():
    """
    Request body (JSON):
        {"userId": "<adminId>", "url": "https://..."}

    Returns:
        200: {"isSafe", "riskLevel", "reason", "warnings"}
    """
    data = request.get_json(silent=True) or {}
    url = data.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("url is required")
    verdict = link_safety.check_link(url)
    return jsonify(verdict.to_dict()), 200


@admin_bp.route("/users/<user_id>/trust", methods=["GET"])
@require_admin
def user_trust(user_id: str):
    """Trust record (cleanPostCount, postViolations, isTrusted) for any user."""
    record = trust.get_trust_record(require_id(user_id, "userId"))
    return jsonify(record), 200
