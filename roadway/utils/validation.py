"""
Input validation and normalization.

Trims and bounds field lengths, removes control characters while keeping
natural punctuation, and builds a clean candidate post for the admission gate.
Validation runs before any classifier call, so a malformed request never costs
an outbound request.
"""

from __future__ import annotations
import re
from typing import Any, Dict, Optional

from roadway.utils.errors import ValidationError

# Document ids from the hosted store and the SPA: letters, digits, '-' and '_'
_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

MAX_TITLE_LEN = 200
MAX_BODY_LEN = 5000
MAX_URL_LEN = 2048
MAX_FIELD_LEN = 80
MAX_IMAGE_URLS = 10
MAX_REASON_INPUT_LEN = 500
REPOST_RATING = 0


def _soft_sanitize_text(text: Any, max_len: int) -> str:
    """
    Free-text fields are permissive:
    - strip & bound length
    - remove control chars only; keep reasonable punctuation
    - normalize repeated tabs/spaces
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        raise ValidationError("Text fields must be strings.")
    t = text.strip()
    if not t:
        return ""
    t = t[:max_len]
    t = _CONTROL_CHARS.sub("", t)
    t = re.sub(r"[ \t]{2,}", " ", t)
    return t


def is_valid_id(value: Optional[str]) -> bool:
    """
    Check if a string looks like a store document id.

    Example:
        >>> is_valid_id("u_123-abc")
        True
        >>> is_valid_id("../etc")
        False
    """
    if not value or not isinstance(value, str):
        return False
    return bool(_ID_PATTERN.match(value))


def require_id(value: Any, field_name: str = "userId") -> str:
    """Return a validated id or raise ValidationError naming the field."""
    if isinstance(value, str):
        value = value.strip()
    if not value:
        raise ValidationError(f"{field_name} is required")
    if not is_valid_id(value):
        raise ValidationError(f"{field_name} is invalid")
    return value


def normalize_link(value: Any) -> Optional[str]:
    """Trim an optional link; empty strings mean "no link"."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("linkUrl must be a string")
    v = value.strip()
    if not v:
        return None
    if len(v) > MAX_URL_LEN:
        raise ValidationError("linkUrl is too long")
    return v


def normalize_reason(value: Any) -> Optional[str]:
    """Optional reviewer-supplied reason for a rejection."""
    if value is None:
        return None
    reason = _soft_sanitize_text(value, MAX_REASON_INPUT_LEN)
    return reason or None


def _parse_rating(value: Any, is_repost: bool = False) -> int:
    """
    Ratings are whole stars 1-5; accepts 4, 4.0 and "4".

    Reposts carry no rating of their own: the SPA sends 0, and 0 or a missing
    value is stored as 0.
    """
    if is_repost and (value is None or value == "" or (value == 0 and not isinstance(value, bool))):
        return REPOST_RATING
    if value is None or value == "":
        raise ValidationError("rating is required")

    invalid = ValidationError("rating must be a whole number between 1 and 5")
    if isinstance(value, bool):
        raise invalid
    if isinstance(value, int):
        rating = value
    elif isinstance(value, float) and value.is_integer():
        rating = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        rating = int(value.strip())
    else:
        raise invalid

    if not 1 <= rating <= 5:
        raise invalid
    return rating


def validate_post_payload(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validates an incoming post submission and returns the clean candidate.

    Raises ValidationError on the first problem. On success the candidate has:
      - author (validated id)
      - courseName, review (sanitized text, may be empty)
      - rating (int 1-5; 0 for a repost)
      - linkUrl (optional trimmed string)
      - repostOf (optional post id)
      - field, isCommunityPost, imageUrls (pass-through with type checks)
    """
    if not isinstance(data, dict) or not data:
        raise ValidationError("Invalid request body")

    author = require_id(data.get("author") or data.get("userId"), "author")
    course_name = _soft_sanitize_text(data.get("courseName"), MAX_TITLE_LEN)
    review = _soft_sanitize_text(data.get("review"), MAX_BODY_LEN)
    link_url = normalize_link(data.get("linkUrl"))

    repost_of = data.get("repostOf")
    if isinstance(repost_of, dict):
        # The SPA sometimes sends the hydrated original post
        repost_of = repost_of.get("id")
    repost_of = require_id(repost_of, "repostOf") if repost_of else None

    rating = _parse_rating(data.get("rating"), is_repost=repost_of is not None)

    field = _soft_sanitize_text(data.get("field"), MAX_FIELD_LEN) or None

    is_community_post = data.get("isCommunityPost", False)
    if not isinstance(is_community_post, bool):
        raise ValidationError("isCommunityPost must be a boolean")

    image_urls = data.get("imageUrls") or []
    if not isinstance(image_urls, list) or not all(isinstance(u, str) for u in image_urls):
        raise ValidationError("imageUrls must be a list of strings")
    if len(image_urls) > MAX_IMAGE_URLS:
        raise ValidationError(f"At most {MAX_IMAGE_URLS} images are allowed")
    image_urls = [u.strip()[:MAX_URL_LEN] for u in image_urls if u.strip()]

    return {
        "author": author,
        "courseName": course_name,
        "review": review,
        "rating": rating,
        "linkUrl": link_url,
        "repostOf": repost_of,
        "field": field,
        "isCommunityPost": is_community_post,
        "imageUrls": image_urls,
    }
