"""
Authorization helpers for admin-only operations.

Session issuance lives outside this service: callers identify themselves with
a `userId` (query string or JSON body), and admin rights come from the
`is_admin` flag on the user's profile.

Provides:
- ensure_admin: service-level check raising NotFound / Forbidden
- is_admin: boolean check that never raises for unknown users
- @require_admin: route decorator that resolves the requester and runs ensure_admin
"""

from __future__ import annotations
from functools import wraps
from typing import Any, Dict, Optional
from flask import g, request

from roadway.services import supabase_client
from roadway.utils.errors import Forbidden, NotFound
from roadway.utils.validation import require_id


def ensure_admin(user_id: Optional[str]) -> Dict[str, Any]:
    """
    Return the requester's profile if they are an admin.

    Raises:
        ValidationError: user_id missing or malformed
        NotFound: no such user
        Forbidden: user exists but is not an admin
    """
    user_id = require_id(user_id, "userId")
    profile = supabase_client.get_user_profile(user_id)
    if not profile:
        raise NotFound("User not found")
    if not profile.get("is_admin", False):
        raise Forbidden("Access denied. Admin privileges required.")
    return profile


def is_admin(user_id: Optional[str]) -> bool:
    """
    Check if a user has admin privileges.

    Args:
        user_id: User id to check (None and unknown ids are simply not admins)
    """
    if not user_id:
        return False

    profile = supabase_client.get_user_profile(user_id)
    return bool(profile and profile.get("is_admin", False))


def requester_id() -> Optional[str]:
    """userId from the JSON body, falling back to the query string."""
    data = request.get_json(silent=True) or {}
    user_id = data.get("userId") if isinstance(data, dict) else None
    return user_id or request.args.get("userId")


def require_admin(f):
    """
    Decorator to require admin privileges for a route.

    Errors propagate as ModerationError subclasses and are rendered by the
    app-level error handler (400 / 403 / 404).

    Usage:
        @admin_bp.route("/check-link", methods=["POST"])
        @require_admin
        def check_link():
            reviewer = g.admin_user_id
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = requester_id()
        ensure_admin(user_id)
        g.admin_user_id = user_id
        return f(*args, **kwargs)

    return decorated_function
