"""
Shared constants used across the application.

This module contains values that need to be consistent across the store
mapping, the moderation services and the HTTP layer.
"""

# Post lifecycle. Rejected-by-classifier posts are never stored, so a stored
# "rejected" post always carries a human reviewer in rejected_by.
POST_STATUS_PENDING = "pending"
POST_STATUS_APPROVED = "approved"
POST_STATUS_REJECTED = "rejected"
POST_STATUSES = (POST_STATUS_PENDING, POST_STATUS_APPROVED, POST_STATUS_REJECTED)

# Verdict severities / link risk levels share the same scale
SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"
SEVERITY_LEVELS = (SEVERITY_LOW, SEVERITY_MEDIUM, SEVERITY_HIGH)

# Violation type tags the classifier is allowed to return
VIOLATION_TYPES = frozenset({
    "hate_speech",
    "abusive",
    "explicit",
    "violence",
    "spam",
    "malicious_link",
})

# Fixed user-facing messages
UNSAFE_LINK_REASON = "Suspicious or malicious link detected"
DEFAULT_REJECT_REASON = "Rejected by moderator"
DEFAULT_VIOLATION_REASON = "Content violates community guidelines"
INVALID_URL_REASON = "invalid URL format"
LINK_CHECK_FAILED_REASON = "Link safety check unavailable; link was not verified"

# Accepted URL scheme prefixes for the local link check
URL_SCHEME_PREFIXES = ("http://", "https://")

# Notification types
NOTIFICATION_COMMENT = "comment"
NOTIFICATION_FOLLOW = "follow"
NOTIFICATION_LIKE = "like"
NOTIFICATION_REPOST = "repost"
NOTIFICATION_POST_APPROVED = "post_approved"
NOTIFICATION_POST_REJECTED = "post_rejected"
NOTIFICATION_TYPES = frozenset({
    NOTIFICATION_COMMENT,
    NOTIFICATION_FOLLOW,
    NOTIFICATION_LIKE,
    NOTIFICATION_REPOST,
    NOTIFICATION_POST_APPROVED,
    NOTIFICATION_POST_REJECTED,
})
